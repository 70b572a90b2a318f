"""Nibble conversion and hex-prefix path encoding for Merkle Patricia tries."""

from __future__ import annotations

from collections.abc import Sequence
from itertools import chain

_ODD_FLAG = 0x10
_LEAF_FLAG = 0x20


def to_nibs(data: bytes | bytearray | Sequence[int]) -> list[int]:
    """Split each byte of ``data`` into its high and low nibble."""
    return list(chain.from_iterable((byte >> 4, byte & 0x0F) for byte in bytes(data)))


def to_encoded_path(nibs: Sequence[int], is_leaf: bool) -> bytes:
    """Return the hex-prefix encoding of ``nibs`` for a leaf or extension node."""
    nibs = list(nibs)
    prefix = _LEAF_FLAG if is_leaf else 0
    if len(nibs) % 2:
        prefix += _ODD_FLAG + nibs[0]
        nibs = nibs[1:]
    pairs = zip(nibs[::2], nibs[1::2])
    return bytes([prefix, *((high << 4) + low for high, low in pairs)])


def lcp(a: Sequence[int], b: Sequence[int]) -> int:
    """Return the length of the common prefix of ``a`` and ``b``."""
    for index, (x, y) in enumerate(zip(a, b)):
        if x != y:
            return index
    return min(len(a), len(b))


def prefix_nibs(prefix: bytes | bytearray | Sequence[int]) -> list[int]:
    """Decode a hex-prefix encoded path back into its nibbles.

    Raises ``ValueError`` if ``prefix`` is empty.
    """
    prefix = bytes(prefix)
    if not prefix:
        raise ValueError("encoded path must not be empty")
    first, tail = prefix[0], prefix[1:]
    head = [first & 0x0F] if first & _ODD_FLAG else []
    return head + to_nibs(tail)