"""NetEase Cloud Music specifics: the ``163 key`` tag and the ``.ncm`` container.

Embedded key grammar::

    token     := "163 key(Don't modify):" base64
    plaintext := AES-128-ECB(META_KEY, PKCS7) of base64-decoded payload
    plaintext := "music:" json-object        # json carries "musicId"

Every stage raises :class:`KeyDecodeError` with its own error code.

Container layout (all integers little-endian u32)::

    "CTENFDAM" | 2 bytes | key_len | key (xor 0x64, AES CORE_KEY)
    | meta_len | meta (xor 0x63, a 163 key token) | crc (4) | 1 byte
    | frame_len | image_len | image ... (frame_len bytes) | audio (xor key box)
"""

from __future__ import annotations

import base64
import binascii
import json
import struct
from dataclasses import dataclass, field
from typing import Any

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from musicdedupe.errors import DedupeError, ErrorCode, KeyDecodeError

KEY_PREFIX = "163 key(Don't modify):"
PLAINTEXT_PREFIX = "music:"
MUSIC_ID_FIELD = "musicId"

META_KEY = b"#14ljk_!\\]&0U<'("
CORE_KEY = bytes.fromhex("687a4852416d736f356b496e62617857")
NCM_MAGIC = b"CTENFDAM"
_CORE_KEY_PREFIX_LEN = len(b"neteasecloudmusic")


def _aes_ecb_decrypt(key: bytes, data: bytes) -> bytes:
    decryptor = Cipher(algorithms.AES(key), modes.ECB()).decryptor()
    unpadder = padding.PKCS7(128).unpadder()
    plain = decryptor.update(data) + decryptor.finalize()
    return unpadder.update(plain) + unpadder.finalize()


def decode_163_key(token: str) -> dict[str, Any]:
    """Decode an embedded key token into its metadata object."""
    if not token.startswith(KEY_PREFIX):
        raise KeyDecodeError(ErrorCode.KEY_PREFIX_MISMATCH, details={"token": token[:32]})
    payload = token[len(KEY_PREFIX):].strip()

    try:
        encrypted = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise KeyDecodeError(ErrorCode.KEY_BASE64_INVALID, details={"original": str(exc)}) from exc

    try:
        raw = _aes_ecb_decrypt(META_KEY, encrypted)
    except ValueError as exc:
        raise KeyDecodeError(ErrorCode.KEY_CIPHER_FAILED, details={"original": str(exc)}) from exc

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise KeyDecodeError(ErrorCode.KEY_NOT_UTF8, details={"original": str(exc)}) from exc

    if not text.startswith(PLAINTEXT_PREFIX):
        raise KeyDecodeError(
            ErrorCode.KEY_PREFIX_MISMATCH,
            message=f"unsupported 163 key: {text[:32]}",
        )

    try:
        data = json.loads(text[len(PLAINTEXT_PREFIX):])
    except json.JSONDecodeError as exc:
        raise KeyDecodeError(ErrorCode.KEY_JSON_INVALID, details={"original": str(exc)}) from exc
    if not isinstance(data, dict):
        raise KeyDecodeError(ErrorCode.KEY_JSON_INVALID, details={"original": "not an object"})
    return data


def music_id_from(meta: dict[str, Any]) -> int:
    value = meta.get(MUSIC_ID_FIELD)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise KeyDecodeError(
            ErrorCode.KEY_JSON_INVALID,
            details={"original": f"{MUSIC_ID_FIELD}={value!r}"},
        )
    return value


def decrypt_163_key(token: str) -> int:
    """Recover the music id from an embedded key token."""
    return music_id_from(decode_163_key(token))


@dataclass
class NcmContent:
    """Decoded payload of an ``.ncm`` container."""

    audio: bytes
    music_id: int | None = None
    meta: dict[str, Any] = field(default_factory=dict)


def build_key_box(key_data: bytes) -> bytes:
    """Expand the container key into the 256-byte xor table."""
    box = list(range(256))
    j = 0
    key_len = len(key_data)
    for i in range(256):
        j = (box[i] + j + key_data[i % key_len]) & 0xFF
        box[i], box[j] = box[j], box[i]

    table = bytearray(256)
    for i in range(256):
        k = (i + 1) & 0xFF
        si = box[k]
        sj = box[(k + si) & 0xFF]
        table[i] = box[(si + sj) & 0xFF]
    return bytes(table)


def xor_with_key_box(data: bytes, key_box: bytes) -> bytes:
    """Apply the repeating 256-byte table; the operation is its own inverse."""
    if not data:
        return b""
    stream = key_box * (len(data) // len(key_box) + 1)
    mixed = int.from_bytes(data, "little") ^ int.from_bytes(stream[:len(data)], "little")
    return mixed.to_bytes(len(data), "little")


def _read_u32(data: bytes, offset: int) -> int:
    return struct.unpack_from("<I", data, offset)[0]


def unwrap_ncm(data: bytes) -> NcmContent:
    """Decode an ``.ncm`` container in memory.

    A damaged metadata block only loses the music id; a damaged key or
    audio section raises ``DedupeError(CONTAINER_INVALID)``.
    """
    if not data.startswith(NCM_MAGIC):
        raise DedupeError(ErrorCode.CONTAINER_INVALID, message="missing NCM magic header")

    try:
        offset = len(NCM_MAGIC) + 2
        key_len = _read_u32(data, offset)
        offset += 4
        key_cipher = bytes(b ^ 0x64 for b in data[offset:offset + key_len])
        offset += key_len
        key_data = _aes_ecb_decrypt(CORE_KEY, key_cipher)[_CORE_KEY_PREFIX_LEN:]
        if not key_data:
            raise ValueError("empty container key")

        meta_len = _read_u32(data, offset)
        offset += 4
        meta_raw = bytes(b ^ 0x63 for b in data[offset:offset + meta_len])
        offset += meta_len

        frame_len = _read_u32(data, offset + 5)
        offset += 13 + frame_len
        if offset > len(data):
            raise ValueError("truncated image frame")
    except (struct.error, ValueError) as exc:
        raise DedupeError(
            ErrorCode.CONTAINER_INVALID,
            details={"original": str(exc)},
        ) from exc

    content = NcmContent(audio=xor_with_key_box(data[offset:], build_key_box(key_data)))
    if meta_len:
        try:
            content.meta = decode_163_key(meta_raw.decode("utf-8", errors="replace"))
            content.music_id = music_id_from(content.meta)
        except KeyDecodeError:
            content.music_id = None
    return content
