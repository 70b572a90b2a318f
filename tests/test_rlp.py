import pytest

from ethtrie.keccak import keccak
from ethtrie.rlp import RlpError, decode, decode_uint, encode, encoded_length


def test_empty_string_code():
    assert encode(b"") == b"\x80"
    assert encode(0) == encode(b"")
    assert encode(False) == encode(b"")


def test_empty_list_code():
    assert encode([]) == b"\xc0"
    assert encode(()) == encode([])


def test_short_string():
    assert encode(b"dog") == b"\x83dog"


def test_single_low_byte_is_its_own_encoding():
    assert encode(b"\x7f") == b"\x7f"
    assert encode(True) == b"\x01"


def test_empty_string_hash_is_empty_trie_root():
    assert keccak(encode(b"")).hex() == (
        "56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"
    )


@pytest.mark.parametrize(
    "item",
    [
        b"",
        b"\x00",
        b"\x80",
        b"x" * 55,
        b"y" * 56,
        b"z" * 1024,
        [],
        [b"a", [b"b", [b""]], b"c" * 60],
        [b"q" * 30, b"r" * 30],
    ],
)
def test_round_trip(item):
    encoded = encode(item)
    assert decode(encoded) == item
    assert encoded_length(item) == len(encoded)


@pytest.mark.parametrize("value", [0, 1, 127, 128, 255, 256, 2**64 - 1, 2**256 - 1])
def test_uint_round_trip(value):
    assert decode_uint(encode(value)) == value


def test_long_string_header_carries_length():
    encoded = encode(b"a" * 56)
    assert len(encoded) == 58
    assert encoded[1] == 56


def test_negative_integer_rejected():
    with pytest.raises(RlpError):
        encode(-1)


def test_unsupported_type_rejected():
    with pytest.raises(RlpError):
        encode(1.5)


def test_non_canonical_single_byte_rejected():
    with pytest.raises(RlpError):
        decode(b"\x81\x00")


def test_truncated_input_rejected():
    with pytest.raises(RlpError):
        decode(b"\x83do")


def test_trailing_bytes_rejected():
    with pytest.raises(RlpError):
        decode(encode(b"dog") + b"\x00")


def test_empty_input_rejected():
    with pytest.raises(RlpError):
        decode(b"")


def test_non_canonical_long_form_rejected():
    with pytest.raises(RlpError):
        decode(b"\xb8\x01a")


def test_uint_with_leading_zero_rejected():
    with pytest.raises(RlpError):
        decode_uint(b"\x82\x00\x01")


def test_uint_from_list_rejected():
    with pytest.raises(RlpError):
        decode_uint(encode([b"a"]))