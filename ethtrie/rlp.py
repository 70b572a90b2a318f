"""Recursive Length Prefix encoding and decoding.

Items are byte strings, non-negative integers, booleans and (nested) lists
or tuples of items. Decoding yields ``bytes`` for strings and ``list`` for
lists.
"""

from __future__ import annotations

from typing import Union

EMPTY_STRING_CODE = 0x80
EMPTY_LIST_CODE = 0xC0

Item = Union[bytes, list]


class RlpError(ValueError):
    """Raised for malformed RLP data or unencodable values."""


def _header(length: int, offset: int) -> bytes:
    if length < 56:
        return bytes([offset + length])
    length_bytes = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([offset + 55 + len(length_bytes)]) + length_bytes


def _encode_bytes(data: bytes) -> bytes:
    if len(data) == 1 and data[0] < EMPTY_STRING_CODE:
        return data
    return _header(len(data), EMPTY_STRING_CODE) + data


def encode(item) -> bytes:
    """Return the RLP encoding of ``item``."""
    if isinstance(item, bool):
        return _encode_bytes(b"\x01" if item else b"")
    if isinstance(item, int):
        if item < 0:
            raise RlpError("cannot encode a negative integer")
        return _encode_bytes(item.to_bytes((item.bit_length() + 7) // 8, "big"))
    if isinstance(item, (bytes, bytearray, memoryview)):
        return _encode_bytes(bytes(item))
    if isinstance(item, (list, tuple)):
        payload = b"".join(encode(element) for element in item)
        return _header(len(payload), EMPTY_LIST_CODE) + payload
    raise RlpError(f"cannot encode value of type {type(item).__name__}")


def encoded_length(item) -> int:
    """Return the length in bytes of the RLP encoding of ``item``."""
    return len(encode(item))


def _read_length(data: bytes, pos: int, size: int) -> int:
    end = pos + size
    if end > len(data):
        raise RlpError("input too short")
    length_bytes = data[pos:end]
    if length_bytes[0] == 0:
        raise RlpError("leading zero in length")
    length = int.from_bytes(length_bytes, "big")
    if length < 56:
        raise RlpError("non-canonical size")
    return length


def _decode_at(data: bytes, pos: int) -> tuple[Item, int]:
    if pos >= len(data):
        raise RlpError("input too short")
    prefix = data[pos]
    if prefix < EMPTY_STRING_CODE:
        return data[pos : pos + 1], pos + 1

    if prefix < EMPTY_LIST_CODE:
        if prefix <= 0xB7:
            length = prefix - EMPTY_STRING_CODE
            start = pos + 1
        else:
            size = prefix - 0xB7
            length = _read_length(data, pos + 1, size)
            start = pos + 1 + size
        end = start + length
        if end > len(data):
            raise RlpError("input too short")
        value = data[start:end]
        if length == 1 and value[0] < EMPTY_STRING_CODE:
            raise RlpError("non-canonical single byte")
        return value, end

    if prefix <= 0xF7:
        length = prefix - EMPTY_LIST_CODE
        start = pos + 1
    else:
        size = prefix - 0xF7
        length = _read_length(data, pos + 1, size)
        start = pos + 1 + size
    end = start + length
    if end > len(data):
        raise RlpError("input too short")
    items: list = []
    cursor = start
    while cursor < end:
        element, cursor = _decode_at(data, cursor)
        if cursor > end:
            raise RlpError("list element exceeds list payload")
        items.append(element)
    return items, end


def decode(data: bytes | bytearray | memoryview) -> Item:
    """Decode a single RLP item that spans all of ``data``."""
    raw = bytes(data)
    item, end = _decode_at(raw, 0)
    if end != len(raw):
        raise RlpError("trailing bytes after RLP item")
    return item


def decode_uint(data: bytes | bytearray | memoryview) -> int:
    """Decode an RLP-encoded unsigned integer."""
    item = decode(data)
    if isinstance(item, list):
        raise RlpError("expected a string, found a list")
    if item and item[0] == 0:
        raise RlpError("leading zero in integer")
    return int.from_bytes(item, "big")