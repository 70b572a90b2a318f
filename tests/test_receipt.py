import pytest

from ethtrie import rlp
from ethtrie.receipt import Bloom, Log, Receipt, ReceiptPayload

EXPECTED_LEGACY = bytes.fromhex(
    "f901c58001b9010000000000000010000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000500000000000000000000000000000000000014000000000000000000000000000000000000000000000000000000000000000000000000000010000080000000000000000000004000000000000000000000000000040000000000000000000000000000800000000000000000000000000000000000000000000000000000400000000000000000000000000000000000000000000000000000000000010000000000000000000000000000000000000000000000000000000000000f8bef85d940000000000000000000000000000000000000011f842a0000000000000000000000000000000000000000000000000000000000000deada0000000000000000000000000000000000000000000000000000000000000beef830100fff85d940000000000000000000000000000000000000111f842a0000000000000000000000000000000000000000000000000000000000000deada0000000000000000000000000000000000000000000000000000000000000beef830100ff"
)

DEAD = bytes.fromhex("000000000000000000000000000000000000000000000000000000000000dead")
BEEF = bytes.fromhex("000000000000000000000000000000000000000000000000000000000000beef")


def _logs():
    return [
        Log(
            address=bytes.fromhex("0000000000000000000000000000000000000011"),
            topics=[DEAD, BEEF],
            data=bytes.fromhex("0100ff"),
        ),
        Log(
            address=bytes.fromhex("0000000000000000000000000000000000000111"),
            topics=[DEAD, BEEF],
            data=bytes.fromhex("0100ff"),
        ),
    ]


def test_legacy():
    receipt = Receipt.create(0, False, 1, _logs())
    assert receipt.encode() == EXPECTED_LEGACY


def test_eip2930():
    receipt = Receipt.create(1, False, 1, _logs())
    assert receipt.encode() == bytes([0x01]) + EXPECTED_LEGACY


def test_eip1559():
    receipt = Receipt.create(2, False, 1, _logs())
    assert receipt.encode() == bytes([0x02]) + EXPECTED_LEGACY


def test_bloom_contains_addresses_and_topics():
    receipt = Receipt.create(0, True, 21000, _logs())
    bloom = receipt.payload.logs_bloom
    for log in _logs():
        assert log.address in bloom
        for topic in log.topics:
            assert topic in bloom


def test_bloom_accrue_sets_at_most_three_bits():
    bloom = Bloom()
    bloom.accrue(b"some data")
    set_bits = sum(bin(byte).count("1") for byte in bytes(bloom))
    assert 1 <= set_bits <= 3
    assert b"some data" in bloom


def test_empty_bloom_is_zero():
    assert bytes(Bloom()) == bytes(256)
    assert b"anything" not in Bloom()


def test_bloom_rejects_wrong_size():
    with pytest.raises(ValueError):
        Bloom(bytearray(10))


def test_log_rejects_bad_address():
    with pytest.raises(ValueError):
        Log(address=b"\x01\x02")


def test_log_rejects_bad_topic():
    with pytest.raises(ValueError):
        Log(topics=[b"\x01"])


def test_log_encode_round_trip():
    log = _logs()[0]
    assert rlp.decode(log.encode()) == [log.address, [DEAD, BEEF], log.data]


def test_payload_decodes_to_fields():
    receipt = Receipt.create(0, True, 5, _logs())
    decoded = rlp.decode(receipt.payload.encode())
    assert decoded[0] == b"\x01"
    assert rlp.decode_uint(rlp.encode(decoded[1])) == 5
    assert decoded[2] == bytes(receipt.payload.logs_bloom)
    assert len(decoded[3]) == 2


def test_typed_receipt_prefixes_payload():
    receipt = Receipt.create(3, True, 7, [])
    assert receipt.encode() == b"\x03" + receipt.payload.encode()


def test_default_receipt_matches_default_payload():
    assert Receipt().encode() == ReceiptPayload().encode()
    assert rlp.decode(Receipt().encode()) == [b"", b"", bytes(256), []]