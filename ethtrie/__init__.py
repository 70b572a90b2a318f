"""Merkle Patricia Trie, RLP, Keccak-256, receipt and proof helpers for Ethereum data."""

__version__ = "0.1.0"
__all__ = ["keccak", "rlp", "receipt", "nibbles", "mpt", "proof"]