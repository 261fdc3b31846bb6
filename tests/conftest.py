"""Shared builders for encrypted NetEase payloads."""

from __future__ import annotations

import base64
import json
import struct

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from musicdedupe.core.netease import (
    CORE_KEY,
    KEY_PREFIX,
    META_KEY,
    NCM_MAGIC,
    build_key_box,
    xor_with_key_box,
)


def aes_ecb_encrypt(key: bytes, data: bytes) -> bytes:
    padder = padding.PKCS7(128).padder()
    padded = padder.update(data) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def make_163_key(plaintext: str | bytes) -> str:
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    return KEY_PREFIX + base64.b64encode(aes_ecb_encrypt(META_KEY, plaintext)).decode("ascii")


def make_music_key(music_id: int, **extra) -> str:
    return make_163_key("music:" + json.dumps({"musicId": music_id, **extra}))


def make_ncm(
    audio: bytes,
    meta: dict | None = None,
    *,
    rc4_key: bytes = b"1234567890abcdefghijklmnopqrstuvwxyz",
    image: bytes = b"\x89PNG fake cover",
) -> bytes:
    key_cipher = aes_ecb_encrypt(CORE_KEY, b"neteasecloudmusic" + rc4_key)
    key_block = bytes(b ^ 0x64 for b in key_cipher)
    if meta is None:
        meta_block = b""
    else:
        token = make_163_key("music:" + json.dumps(meta))
        meta_block = bytes(b ^ 0x63 for b in token.encode("utf-8"))
    return b"".join([
        NCM_MAGIC,
        b"\x01\x70",
        struct.pack("<I", len(key_block)),
        key_block,
        struct.pack("<I", len(meta_block)),
        meta_block,
        b"\x00\x00\x00\x00",  # crc
        b"\x00",
        struct.pack("<I", len(image)),
        struct.pack("<I", len(image)),
        image,
        xor_with_key_box(audio, build_key_box(rc4_key)),
    ])


@pytest.fixture
def music_key():
    return make_music_key


@pytest.fixture
def ncm_bytes():
    return make_ncm


@pytest.fixture
def raw_163_key():
    return make_163_key
