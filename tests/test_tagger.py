"""Tests for musicdedupe.core.tagger."""

from pathlib import Path

import pytest

from musicdedupe.core.tagger import (
    MetadataReader,
    fallback_track_name,
    find_key_token,
    iter_tag_texts,
)
from musicdedupe.errors import DedupeError, ErrorCode


class _Field:
    def __init__(self, first):
        self.first = first


class _Frame:
    def __init__(self, *text):
        self.text = list(text)


class _MFile:
    def __init__(self, tags):
        self.tags = tags


class _File:
    def __init__(self, values, raw_tags=None):
        self._values = values
        self.mfile = _MFile(raw_tags or {})

    def __getitem__(self, key):
        return _Field(self._values.get(key))


def _patch_loader(monkeypatch, fake):
    monkeypatch.setattr(
        "musicdedupe.core.tagger.music_tag.load_file",
        lambda _path: fake,
    )


class TestHelpers:
    def test_fallback_track_name_strips_count(self):
        assert fallback_track_name(Path("/m/My Song (2).mp3")) == "My Song"

    def test_fallback_track_name_trims(self):
        assert fallback_track_name(Path("/m/ My Song .mp3")) == "My Song"

    def test_iter_tag_texts_handles_frames_and_lists(self):
        tags = {"COMM": _Frame("a", "b"), "title": ["c"], "x": "d", "n": 5}
        assert list(iter_tag_texts(tags)) == ["a", "b", "c", "d"]

    def test_iter_tag_texts_none(self):
        assert list(iter_tag_texts(None)) == []

    def test_find_key_token(self, music_key):
        token = music_key(5)
        assert find_key_token(["foo", token]) == token
        assert find_key_token(["foo"]) is None


class TestReadPlain:
    def test_reads_tags(self, monkeypatch):
        _patch_loader(monkeypatch, _File({
            "tracktitle": "Song",
            "album": "LP",
            "#bitrate": 320000,
            "#length": 200.5,
        }))
        rec = MetadataReader().read("/music/whatever(1).mp3")
        assert rec.track_name == "Song"
        assert rec.album == "LP"
        assert rec.bitrate == 320000
        assert rec.duration_ms == 200500
        assert rec.stable_id is None
        assert rec.source_path == Path("/music/whatever(1).mp3")

    def test_missing_title_falls_back_to_filename(self, monkeypatch):
        _patch_loader(monkeypatch, _File({"album": ""}))
        rec = MetadataReader().read("/music/Old Song(3).mp3")
        assert rec.track_name == "Old Song"
        assert rec.album is None

    def test_stable_id_from_comment(self, monkeypatch, music_key):
        _patch_loader(monkeypatch, _File({"tracktitle": "Song", "comment": music_key(42)}))
        assert MetadataReader().read("a.mp3").stable_id == 42

    def test_stable_id_from_raw_tag_frame(self, monkeypatch, music_key):
        _patch_loader(monkeypatch, _File(
            {"tracktitle": "Song"},
            raw_tags={"COMM::XXX": _Frame(music_key(77))},
        ))
        assert MetadataReader().read("a.flac").stable_id == 77

    def test_broken_key_is_not_fatal(self, monkeypatch):
        _patch_loader(monkeypatch, _File({
            "tracktitle": "Song",
            "comment": "163 key(Don't modify):%%%garbage",
        }))
        rec = MetadataReader().read("a.mp3")
        assert rec.track_name == "Song"
        assert rec.stable_id is None

    def test_loader_failure_raises(self, monkeypatch):
        def boom(_path):
            raise PermissionError("permission denied")

        monkeypatch.setattr("musicdedupe.core.tagger.music_tag.load_file", boom)
        with pytest.raises(DedupeError) as info:
            MetadataReader().read("locked.mp3")
        assert info.value.code is ErrorCode.FILE_ACCESS_DENIED
        assert info.value.path == Path("locked.mp3")

    def test_unrecognized_file_raises(self, monkeypatch):
        _patch_loader(monkeypatch, None)
        with pytest.raises(DedupeError) as info:
            MetadataReader().read("a.wav")
        assert info.value.code is ErrorCode.TAG_UNSUPPORTED_FORMAT

    def test_no_title_anywhere_raises(self, monkeypatch):
        _patch_loader(monkeypatch, _File({}))
        with pytest.raises(DedupeError) as info:
            MetadataReader().read("/music/   .mp3")
        assert info.value.code is ErrorCode.TAG_MISSING_REQUIRED


class _Info:
    bitrate = 999000
    length = 181.25


class _Decoded:
    def __init__(self, tags):
        self.tags = tags
        self.info = _Info()


class TestReadNcm:
    @pytest.fixture
    def captured(self, monkeypatch):
        seen = {}

        def fake_file(fileobj, easy=False):
            seen["audio"] = fileobj.read()
            seen["easy"] = easy
            return seen.get("result")

        monkeypatch.setattr("musicdedupe.core.tagger.mutagen.File", fake_file)
        return seen

    def test_container_id_and_decoded_tags(self, tmp_path, ncm_bytes, captured, music_key):
        audio = b"fLaC" + b"\x01" * 64
        path = tmp_path / "Song(1).ncm"
        path.write_bytes(ncm_bytes(audio, {"musicId": 100, "musicName": "Meta Name"}))
        captured["result"] = _Decoded({"title": ["Tag Name"], "album": ["LP"],
                                       "description": [music_key(5)]})

        rec = MetadataReader().read(path)

        assert captured["audio"] == audio
        assert captured["easy"] is True
        assert rec.stable_id == 100
        assert rec.track_name == "Tag Name"
        assert rec.album == "LP"
        assert rec.bitrate == 999000
        assert rec.duration_ms == 181250

    def test_tag_key_used_when_container_has_no_id(self, tmp_path, ncm_bytes, captured, music_key):
        path = tmp_path / "x.ncm"
        path.write_bytes(ncm_bytes(b"ID3...", None))
        captured["result"] = _Decoded({"title": ["T"], "description": [music_key(5)]})
        assert MetadataReader().read(path).stable_id == 5

    def test_container_meta_fills_missing_tags(self, tmp_path, ncm_bytes, captured):
        path = tmp_path / "x.ncm"
        path.write_bytes(ncm_bytes(b"ID3...", {"musicId": 1, "musicName": "Meta", "album": "A"}))
        captured["result"] = _Decoded(None)
        rec = MetadataReader().read(path)
        assert rec.track_name == "Meta"
        assert rec.album == "A"

    def test_invalid_container_raises_with_path(self, tmp_path):
        path = tmp_path / "bad.ncm"
        path.write_bytes(b"nope")
        with pytest.raises(DedupeError) as info:
            MetadataReader().read(path)
        assert info.value.code is ErrorCode.CONTAINER_INVALID
        assert info.value.path == path

    def test_unparseable_stream_raises(self, tmp_path, ncm_bytes, captured):
        path = tmp_path / "x.ncm"
        path.write_bytes(ncm_bytes(b"????", {"musicId": 1}))
        captured["result"] = None
        with pytest.raises(DedupeError) as info:
            MetadataReader().read(path)
        assert info.value.code is ErrorCode.TAG_UNSUPPORTED_FORMAT

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(DedupeError) as info:
            MetadataReader().read(tmp_path / "gone.ncm")
        assert info.value.code is ErrorCode.FILE_NOT_FOUND
