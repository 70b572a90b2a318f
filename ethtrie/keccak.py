"""Keccak-256 hashing."""

from __future__ import annotations

from Crypto.Hash import keccak as _keccak

KECCAK_EMPTY = bytes.fromhex(
    "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
)
"""Keccak-256 hash of the empty byte string."""


def keccak(data: bytes | bytearray | memoryview | str) -> bytes:
    """Return the 32-byte Keccak-256 digest of ``data``.

    Strings are hashed as their UTF-8 encoding.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return _keccak.new(digest_bits=256, data=bytes(data)).digest()