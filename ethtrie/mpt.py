"""A sparse Merkle Patricia Trie as used for Ethereum state and storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from . import rlp
from .keccak import KECCAK_EMPTY, keccak
from .nibbles import lcp, prefix_nibs, to_encoded_path, to_nibs

EMPTY_ROOT = bytes.fromhex(
    "56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"
)
"""Root hash of an empty trie."""

_EMPTY_STRING = bytes([rlp.EMPTY_STRING_CODE])
_DIGEST_SIZE = 32
_BRANCH_WIDTH = 16
_LEAF_FLAG = 0x20


class MptError(Exception):
    """Base class for trie errors."""


class NodeNotResolvedError(MptError):
    """An operation reached a node that is only known by its hash."""

    def __init__(self, digest: bytes) -> None:
        self.digest = bytes(digest)
        super().__init__(f"reached an unresolved node: 0x{self.digest.hex()}")


class ValueInBranchError(MptError):
    """A value would have to be stored in a branch node."""

    def __init__(self) -> None:
        super().__init__("branch node with value")


@dataclass(frozen=True)
class Null:
    """An empty trie."""


@dataclass
class Branch:
    """A node with up to sixteen children."""

    children: list[Optional["MptNode"]] = field(
        default_factory=lambda: [None] * _BRANCH_WIDTH
    )

    def __post_init__(self) -> None:
        self.children = list(self.children)
        if len(self.children) != _BRANCH_WIDTH:
            raise ValueError(f"a branch must have {_BRANCH_WIDTH} children")


@dataclass
class Leaf:
    """A node holding the encoded remaining path and a value."""

    prefix: bytes
    value: bytes

    def __post_init__(self) -> None:
        self.prefix = bytes(self.prefix)
        self.value = bytes(self.value)


@dataclass
class Extension:
    """A node sharing a path prefix in front of exactly one child."""

    prefix: bytes
    child: "MptNode"

    def __post_init__(self) -> None:
        self.prefix = bytes(self.prefix)


@dataclass(frozen=True)
class Digest:
    """A sub-trie known only by its hash."""

    digest: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "digest", bytes(self.digest))
        if len(self.digest) != _DIGEST_SIZE:
            raise ValueError(f"a digest must be {_DIGEST_SIZE} bytes")


NodeData = Union[Null, Branch, Leaf, Extension, Digest]


@dataclass(frozen=True)
class BytesReference:
    """A reference by the node's own encoding, used when it is shorter than 32 bytes."""

    data: bytes


@dataclass(frozen=True)
class DigestReference:
    """A reference by the Keccak hash of the node's encoding."""

    digest: bytes


Reference = Union[BytesReference, DigestReference]


@dataclass
class StateAccount:
    """An account as stored in the state trie."""

    nonce: int = 0
    balance: int = 0
    storage_root: bytes = EMPTY_ROOT
    code_hash: bytes = KECCAK_EMPTY

    def to_rlp(self) -> bytes:
        """Return the RLP encoding of the account."""
        return rlp.encode([self.nonce, self.balance, self.storage_root, self.code_hash])


def _list_header(length: int) -> bytes:
    if length < 56:
        return bytes([rlp.EMPTY_LIST_CODE + length])
    length_bytes = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0xF7 + len(length_bytes)]) + length_bytes


class MptNode:
    """A node of a sparse Merkle Patricia Trie; the root node stands for the whole trie.

    Parts of the trie may be represented only by their hash; operations that reach
    such a part raise :class:`NodeNotResolvedError`. Branches never hold values.
    """

    __slots__ = ("_data", "_cached_reference")

    def __init__(self, data: NodeData | None = None) -> None:
        self._data: NodeData = Null() if data is None else data
        self._cached_reference: Reference | None = None

    @property
    def data(self) -> NodeData:
        """The type and contents of this node."""
        return self._data

    @data.setter
    def data(self, value: NodeData) -> None:
        self._data = value
        self._invalidate()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MptNode):
            return NotImplemented
        return self._data == other._data

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"MptNode({self._data!r})"

    # encoding -----------------------------------------------------------------

    @classmethod
    def from_rlp(cls, data: bytes | bytearray | memoryview) -> "MptNode":
        """Decode a node from its RLP encoding."""
        raw = bytes(data)
        if not raw:
            return cls()
        try:
            item = rlp.decode(raw)
        except rlp.RlpError as exc:
            raise MptError(f"RLP error: {exc}") from exc
        return cls._from_item(item)

    @classmethod
    def _from_item(cls, item: Any) -> "MptNode":
        if isinstance(item, bytes):
            if not item:
                return cls()
            if len(item) == _DIGEST_SIZE:
                return cls(Digest(item))
            raise MptError(f"unexpected RLP string of length {len(item)}")
        if len(item) == 2:
            path, second = item
            if not isinstance(path, bytes) or not path:
                raise MptError("invalid node path")
            if path[0] & _LEAF_FLAG == 0:
                return cls(Extension(path, cls._from_item(second)))
            if not isinstance(second, bytes):
                raise MptError("leaf value must be a string")
            return cls(Leaf(path, second))
        if len(item) == _BRANCH_WIDTH + 1:
            children = [
                None if isinstance(child, bytes) and not child else cls._from_item(child)
                for child in item[:_BRANCH_WIDTH]
            ]
            value = item[_BRANCH_WIDTH]
            if not isinstance(value, bytes):
                raise MptError("branch value must be a string")
            if value:
                raise ValueInBranchError()
            return cls(Branch(children))
        raise MptError(f"unexpected RLP list of length {len(item)}")

    def to_rlp(self) -> bytes:
        """Return the RLP encoding of this node."""
        match self._data:
            case Null():
                return _EMPTY_STRING
            case Digest(digest):
                return rlp.encode(digest)
            case Branch(children):
                payload = b"".join(
                    _EMPTY_STRING if child is None else child._reference_bytes()
                    for child in children
                )
                payload += _EMPTY_STRING
            case Leaf(prefix, value):
                payload = rlp.encode(prefix) + rlp.encode(value)
            case Extension(prefix, child):
                payload = rlp.encode(prefix) + child._reference_bytes()
        return _list_header(len(payload)) + payload

    def length(self) -> int:
        """Return the length in bytes of the RLP encoding."""
        return len(self.to_rlp())

    # references and hashes ----------------------------------------------------

    def reference(self) -> Reference:
        """Return how this node is referenced from inside its parent."""
        if self._cached_reference is None:
            self._cached_reference = self._calc_reference()
        return self._cached_reference

    def _calc_reference(self) -> Reference:
        match self._data:
            case Null():
                return BytesReference(_EMPTY_STRING)
            case Digest(digest):
                return DigestReference(digest)
        encoded = self.to_rlp()
        if len(encoded) < _DIGEST_SIZE:
            return BytesReference(encoded)
        return DigestReference(keccak(encoded))

    def _reference_bytes(self) -> bytes:
        reference = self.reference()
        if isinstance(reference, BytesReference):
            return reference.data
        return bytes([rlp.EMPTY_STRING_CODE + _DIGEST_SIZE]) + reference.digest

    def hash(self) -> bytes:
        """Return the 32-byte hash of this node."""
        if isinstance(self._data, Null):
            return EMPTY_ROOT
        reference = self.reference()
        if isinstance(reference, DigestReference):
            return reference.digest
        return keccak(reference.data)

    def _invalidate(self) -> None:
        self._cached_reference = None

    # inspection ---------------------------------------------------------------

    def clear(self) -> None:
        """Remove every key from the trie."""
        self.data = Null()

    def is_empty(self) -> bool:
        """Return whether the trie holds no keys."""
        return isinstance(self._data, Null)

    def is_digest(self) -> bool:
        """Return whether this node is known only by its hash."""
        return isinstance(self._data, Digest)

    def nibs(self) -> list[int]:
        """Return the nibbles of this node's path prefix."""
        if isinstance(self._data, (Leaf, Extension)):
            return prefix_nibs(self._data.prefix)
        return []

    def size(self) -> int:
        """Return the number of traversable nodes."""
        match self._data:
            case Branch(children):
                return 1 + sum(child.size() for child in children if child is not None)
            case Leaf():
                return 1
            case Extension(_, child):
                return 1 + child.size()
        return 0

    def debug_rlp(self, decoder: Callable[[bytes], Any]) -> list[str]:
        """Return one line per leaf, showing its path and ``decoder`` applied to its value."""
        nibs = "".join(f"{nib:x}" for nib in self.nibs())
        match self._data:
            case Null():
                return ["Null"]
            case Branch(children):
                lines = []
                for index, child in enumerate(children):
                    sub = ["None"] if child is None else child.debug_rlp(decoder)
                    lines.extend(f"{index:x} {line}" for line in sub)
                return lines
            case Leaf(_, value):
                return [f"{nibs} -> {decoder(value)!r}"]
            case Extension(_, child):
                return [f"{nibs} {line}" for line in child.debug_rlp(decoder)]
            case Digest(digest):
                return [f"#0x{digest.hex()}"]
        raise MptError("unknown node type")

    # lookup -------------------------------------------------------------------

    def get(self, key: bytes) -> bytes | None:
        """Return the value stored under ``key``, or ``None`` if it is provably absent."""
        return self._get(to_nibs(key))

    def get_rlp(self, key: bytes) -> Any:
        """Return the RLP-decoded value stored under ``key``, or ``None``."""
        value = self.get(key)
        if value is None:
            return None
        try:
            return rlp.decode(value)
        except rlp.RlpError as exc:
            raise MptError(f"RLP error: {exc}") from exc

    def _get(self, nibs: list[int]) -> bytes | None:
        match self._data:
            case Null():
                return None
            case Branch(children):
                if not nibs:
                    return None
                child = children[nibs[0]]
                return None if child is None else child._get(nibs[1:])
            case Leaf(prefix, value):
                return value if prefix_nibs(prefix) == nibs else None
            case Extension(prefix, child):
                self_nibs = prefix_nibs(prefix)
                if nibs[: len(self_nibs)] != self_nibs:
                    return None
                return child._get(nibs[len(self_nibs) :])
            case Digest(digest):
                raise NodeNotResolvedError(digest)
        raise MptError("unknown node type")

    # insertion ----------------------------------------------------------------

    def insert(self, key: bytes, value: bytes) -> bool:
        """Store ``value`` under ``key``; return ``False`` if nothing changed."""
        if not value:
            raise ValueError("value must not be empty")
        return self._insert(to_nibs(key), bytes(value))

    def insert_rlp(self, key: bytes, value: Any) -> bool:
        """Store the RLP encoding of ``value`` under ``key``."""
        return self._insert(to_nibs(key), rlp.encode(value))

    def insert_rlp_encoded(self, key: bytes, value: bytes) -> bool:
        """Store already RLP-encoded ``value`` under ``key``."""
        return self._insert(to_nibs(key), bytes(value))

    def _insert(self, nibs: list[int], value: bytes) -> bool:
        match self._data:
            case Null():
                self._data = Leaf(to_encoded_path(nibs, True), value)
            case Branch(children):
                if not nibs:
                    raise ValueInBranchError()
                index, tail = nibs[0], nibs[1:]
                child = children[index]
                if child is None:
                    children[index] = MptNode(Leaf(to_encoded_path(tail, True), value))
                elif not child._insert(tail, value):
                    return False
            case Leaf(prefix, old_value):
                self_nibs = prefix_nibs(prefix)
                common = lcp(self_nibs, nibs)
                if common == len(self_nibs) and common == len(nibs):
                    if old_value == value:
                        return False
                    self._data = Leaf(prefix, value)
                elif common == len(self_nibs) or common == len(nibs):
                    raise ValueInBranchError()
                else:
                    split = common + 1
                    children = [None] * _BRANCH_WIDTH
                    children[self_nibs[common]] = MptNode(
                        Leaf(to_encoded_path(self_nibs[split:], True), old_value)
                    )
                    children[nibs[common]] = MptNode(
                        Leaf(to_encoded_path(nibs[split:], True), value)
                    )
                    self._data = self._above_branch(Branch(children), self_nibs[:common])
            case Extension(prefix, existing_child):
                self_nibs = prefix_nibs(prefix)
                common = lcp(self_nibs, nibs)
                if common == len(self_nibs):
                    if not existing_child._insert(nibs[common:], value):
                        return False
                elif common == len(nibs):
                    raise ValueInBranchError()
                else:
                    split = common + 1
                    children = [None] * _BRANCH_WIDTH
                    if split < len(self_nibs):
                        children[self_nibs[common]] = MptNode(
                            Extension(to_encoded_path(self_nibs[split:], False), existing_child)
                        )
                    else:
                        children[self_nibs[common]] = existing_child
                    children[nibs[common]] = MptNode(
                        Leaf(to_encoded_path(nibs[split:], True), value)
                    )
                    self._data = self._above_branch(Branch(children), self_nibs[:common])
            case Digest(digest):
                raise NodeNotResolvedError(digest)
        self._invalidate()
        return True

    @staticmethod
    def _above_branch(branch: Branch, shared: list[int]) -> NodeData:
        if shared:
            return Extension(to_encoded_path(shared, False), MptNode(branch))
        return branch

    # deletion -----------------------------------------------------------------

    def delete(self, key: bytes) -> bool:
        """Remove ``key``; return ``False`` if it was not present."""
        return self._delete(to_nibs(key))

    def _delete(self, nibs: list[int]) -> bool:
        match self._data:
            case Null():
                return False
            case Branch(children):
                if not nibs:
                    raise ValueInBranchError()
                index, tail = nibs[0], nibs[1:]
                child = children[index]
                if child is None or not child._delete(tail):
                    return False
                if child.is_empty():
                    children[index] = None
                remaining = [(i, node) for i, node in enumerate(children) if node is not None]
                if len(remaining) == 1:
                    orphan_index, orphan = remaining[0]
                    match orphan.data:
                        case Leaf(prefix, orphan_value):
                            new_nibs = [orphan_index, *prefix_nibs(prefix)]
                            self._data = Leaf(to_encoded_path(new_nibs, True), orphan_value)
                        case Extension(prefix, orphan_child):
                            new_nibs = [orphan_index, *prefix_nibs(prefix)]
                            self._data = Extension(
                                to_encoded_path(new_nibs, False), orphan_child
                            )
                        case _:
                            self._data = Extension(
                                to_encoded_path([orphan_index], False), orphan
                            )
            case Leaf(prefix, _):
                if prefix_nibs(prefix) != nibs:
                    return False
                self._data = Null()
            case Extension(prefix, child):
                self_nibs = prefix_nibs(prefix)
                if nibs[: len(self_nibs)] != self_nibs:
                    return False
                if not child._delete(nibs[len(self_nibs) :]):
                    return False
                match child.data:
                    case Null():
                        self._data = Null()
                    case Leaf(child_prefix, child_value):
                        new_nibs = self_nibs + prefix_nibs(child_prefix)
                        self._data = Leaf(to_encoded_path(new_nibs, True), child_value)
                    case Extension(child_prefix, grandchild):
                        new_nibs = self_nibs + prefix_nibs(child_prefix)
                        self._data = Extension(to_encoded_path(new_nibs, False), grandchild)
            case Digest(digest):
                raise NodeNotResolvedError(digest)
        self._invalidate()
        return True