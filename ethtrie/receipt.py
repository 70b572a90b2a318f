"""Ethereum transaction receipts and their log bloom filters."""

from __future__ import annotations

from dataclasses import dataclass, field

from . import rlp
from .keccak import keccak

BLOOM_SIZE = 256
ADDRESS_SIZE = 20
TOPIC_SIZE = 32


@dataclass
class Bloom:
    """A 2048-bit Ethereum log bloom filter."""

    data: bytearray = field(default_factory=lambda: bytearray(BLOOM_SIZE))

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)
        if len(self.data) != BLOOM_SIZE:
            raise ValueError(f"bloom must be {BLOOM_SIZE} bytes")

    @staticmethod
    def _positions(data: bytes):
        digest = keccak(data)
        for i in (0, 2, 4):
            bit = ((digest[i] << 8) | digest[i + 1]) & 0x7FF
            yield BLOOM_SIZE - 1 - bit // 8, 1 << (bit % 8)

    def accrue(self, data: bytes) -> None:
        """Add the raw bytes ``data`` to the filter."""
        for index, mask in self._positions(bytes(data)):
            self.data[index] |= mask

    def __contains__(self, data: bytes) -> bool:
        return all(self.data[index] & mask for index, mask in self._positions(bytes(data)))

    def __bytes__(self) -> bytes:
        return bytes(self.data)


@dataclass
class Log:
    """A log entry emitted by a contract."""

    address: bytes = bytes(ADDRESS_SIZE)
    topics: list[bytes] = field(default_factory=list)
    data: bytes = b""

    def __post_init__(self) -> None:
        self.address = bytes(self.address)
        self.topics = [bytes(topic) for topic in self.topics]
        self.data = bytes(self.data)
        if len(self.address) != ADDRESS_SIZE:
            raise ValueError(f"address must be {ADDRESS_SIZE} bytes")
        if any(len(topic) != TOPIC_SIZE for topic in self.topics):
            raise ValueError(f"topics must be {TOPIC_SIZE} bytes")

    def _fields(self) -> list:
        return [self.address, list(self.topics), self.data]

    def encode(self) -> bytes:
        """Return the RLP encoding of the log."""
        return rlp.encode(self._fields())


@dataclass
class ReceiptPayload:
    """The RLP-encoded body of a receipt."""

    success: bool = False
    cumulative_gas_used: int = 0
    logs_bloom: Bloom = field(default_factory=Bloom)
    logs: list[Log] = field(default_factory=list)

    def encode(self) -> bytes:
        """Return the RLP encoding of the payload."""
        return rlp.encode(
            [
                self.success,
                self.cumulative_gas_used,
                bytes(self.logs_bloom),
                [log._fields() for log in self.logs],
            ]
        )


@dataclass
class Receipt:
    """The result of executing a transaction."""

    tx_type: int = 0
    payload: ReceiptPayload = field(default_factory=ReceiptPayload)

    @classmethod
    def create(
        cls, tx_type: int, success: bool, cumulative_gas_used: int, logs: list[Log]
    ) -> "Receipt":
        """Build a receipt, computing the bloom filter from ``logs``."""
        bloom = Bloom()
        for log in logs:
            bloom.accrue(log.address)
            for topic in log.topics:
                bloom.accrue(topic)
        return cls(
            tx_type=tx_type,
            payload=ReceiptPayload(
                success=success,
                cumulative_gas_used=cumulative_gas_used,
                logs_bloom=bloom,
                logs=list(logs),
            ),
        )

    def encode(self) -> bytes:
        """Return the encoding, prefixed with the EIP-2718 type for typed receipts."""
        body = self.payload.encode()
        if self.tx_type == 0:
            return body
        return bytes([self.tx_type]) + body