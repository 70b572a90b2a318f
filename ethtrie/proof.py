"""Building sparse tries from EIP-1186 account and storage proofs."""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from .keccak import keccak
from .mpt import (
    EMPTY_ROOT,
    Branch,
    Digest,
    DigestReference,
    Extension,
    Leaf,
    MptError,
    MptNode,
    Null,
    Reference,
)
from .nibbles import to_encoded_path

_ZERO_HASH = bytes(32)

StorageEntry = tuple[MptNode, list[int]]


@dataclass
class StorageProof:
    """The proof of a single storage slot."""

    key: bytes
    proof: list[bytes] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.key = bytes(self.key)
        self.proof = [bytes(node) for node in self.proof]


@dataclass
class AccountProof:
    """The proof of an account and of some of its storage slots."""

    account_proof: list[bytes] = field(default_factory=list)
    storage_hash: bytes = EMPTY_ROOT
    storage_proof: list[StorageProof] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.account_proof = [bytes(node) for node in self.account_proof]
        self.storage_hash = bytes(self.storage_hash)
        self.storage_proof = list(self.storage_proof)


def parse_proof(proof: Iterable[bytes]) -> list[MptNode]:
    """Decode each RLP-encoded proof node."""
    return [MptNode.from_rlp(node) for node in proof]


def _references(node: MptNode, digest: bytes) -> bool:
    return isinstance(node.data, Digest) and node.data.digest == digest


def mpt_from_proof(proof_nodes: Sequence[MptNode]) -> MptNode:
    """Join the nodes of a proof into a single trie rooted at the first node.

    For inclusion proofs the result contains exactly one leaf with the value.
    """
    successor: MptNode | None = None
    for index in range(len(proof_nodes) - 1, -1, -1):
        node = proof_nodes[index]
        if successor is None:
            successor = node
            continue

        reference = successor.reference()
        if not isinstance(reference, DigestReference):
            raise MptError(f"node {index + 1} in proof is not referenced by hash")
        child_ref = reference.digest

        match node.data:
            case Branch(children):
                new_children = list(children)
                position = next(
                    (
                        i
                        for i, child in enumerate(new_children)
                        if child is not None and _references(child, child_ref)
                    ),
                    None,
                )
                if position is None:
                    raise MptError(f"node {index} does not reference the successor")
                new_children[position] = successor
                successor = MptNode(Branch(new_children))
            case Extension(prefix, child):
                if not _references(child, child_ref):
                    raise MptError(f"node {index} does not reference the successor")
                successor = MptNode(Extension(prefix, successor))
            case _:
                raise MptError(f"node {index} has no children to replace")

    return MptNode() if successor is None else successor


def is_not_included(key: bytes, proof_nodes: Sequence[MptNode]) -> bool:
    """Return whether the proof shows that ``key`` is absent from the trie."""
    return mpt_from_proof(proof_nodes).get(key) is None


def _resolve(root: MptNode, node_store: Mapping[Reference, MptNode]) -> MptNode:
    match root.data:
        case Null():
            return MptNode()
        case Leaf(prefix, value):
            return MptNode(Leaf(prefix, value))
        case Branch(children):
            return MptNode(
                Branch(
                    [None if child is None else _resolve(child, node_store) for child in children]
                )
            )
        case Extension(prefix, target):
            return MptNode(Extension(prefix, _resolve(target, node_store)))
        case Digest(digest):
            stored = node_store.get(DigestReference(digest))
            if stored is None:
                return MptNode(Digest(digest))
            return _resolve(stored, node_store)
    raise MptError("unknown node type")


def resolve_nodes(root: MptNode, node_store: Mapping[Reference, MptNode]) -> MptNode:
    """Return a copy of ``root`` with every digest found in ``node_store`` resolved."""
    trie = _resolve(root, node_store)
    if trie.hash() != root.hash():
        raise MptError("resolving nodes changed the root hash")
    return trie


def shorten_node_path(node: MptNode) -> list[MptNode]:
    """Return every variant of a leaf or extension with a suffix of its path.

    Deleting keys can extend leaves and extensions; the shortened variants allow
    the original nodes to be found again by reference.
    """
    nibs = node.nibs()
    match node.data:
        case Leaf(_, value):
            return [
                MptNode(Leaf(to_encoded_path(nibs[i:], True), value))
                for i in range(len(nibs) + 1)
            ]
        case Extension(_, child):
            return [
                MptNode(Extension(to_encoded_path(nibs[i:], False), copy.deepcopy(child)))
                for i in range(len(nibs) + 1)
            ]
    return []


def node_from_digest(digest: bytes) -> MptNode:
    """Return an empty trie for the empty or zero root, a digest node otherwise."""
    digest = bytes(digest)
    if digest in (EMPTY_ROOT, _ZERO_HASH):
        return MptNode()
    return MptNode(Digest(digest))


def _add_orphaned_leafs(
    key: bytes,
    proof: Sequence[bytes],
    nodes_by_reference: dict[Reference, MptNode],
) -> None:
    if not proof:
        return
    try:
        proof_nodes = parse_proof(proof)
    except MptError as exc:
        raise MptError(f"invalid proof encoding: {exc}") from exc
    if is_not_included(keccak(key), proof_nodes):
        for node in shorten_node_path(proof_nodes[-1]):
            nodes_by_reference[node.reference()] = node


def proofs_to_tries(
    state_root: bytes,
    parent_proofs: Mapping[bytes, AccountProof],
    proofs: Mapping[bytes, AccountProof],
) -> tuple[MptNode, dict[bytes, StorageEntry]]:
    """Build the state trie and the storage tries from account proofs.

    ``parent_proofs`` are proofs against ``state_root``; ``proofs`` are the proofs
    of the same accounts after the block, used so that keys can later be deleted.
    """
    if not parent_proofs:
        return node_from_digest(state_root), {}

    storage: dict[bytes, StorageEntry] = {}
    state_nodes: dict[Reference, MptNode] = {}
    state_root_node = MptNode()

    for address, proof in parent_proofs.items():
        proof_nodes = parse_proof(proof.account_proof)
        mpt_from_proof(proof_nodes)
        if proof_nodes:
            state_root_node = proof_nodes[0]
        for node in proof_nodes:
            state_nodes[node.reference()] = node

        fini_proofs = proofs.get(address)
        if fini_proofs is None:
            raise MptError(f"missing final proof for address 0x{bytes(address).hex()}")

        _add_orphaned_leafs(address, fini_proofs.account_proof, state_nodes)

        storage_root = proof.storage_hash
        if not proof.storage_proof:
            storage[address] = (node_from_digest(storage_root), [])
            continue

        storage_nodes: dict[Reference, MptNode] = {}
        storage_root_node = MptNode()
        for storage_proof in proof.storage_proof:
            slot_nodes = parse_proof(storage_proof.proof)
            mpt_from_proof(slot_nodes)
            if slot_nodes:
                storage_root_node = slot_nodes[0]
            for node in slot_nodes:
                storage_nodes[node.reference()] = node

        for storage_proof in fini_proofs.storage_proof:
            _add_orphaned_leafs(storage_proof.key, storage_proof.proof, storage_nodes)

        storage_trie = resolve_nodes(storage_root_node, storage_nodes)
        if storage_trie.hash() != storage_root:
            raise MptError(
                f"storage trie of 0x{bytes(address).hex()} does not match its storage root"
            )

        slots = [int.from_bytes(p.key, "big") for p in proof.storage_proof]
        storage[address] = (storage_trie, slots)

    state_trie = resolve_nodes(state_root_node, state_nodes)
    if state_trie.hash() != bytes(state_root):
        raise MptError("state trie does not match the state root")

    return state_trie, storage