# ethtrie

Building blocks for working with Ethereum state data in Python:

- `ethtrie.keccak`: Keccak-256 hashing. `keccak(data)` returns a 32-byte digest; `str`
  input is hashed as UTF-8. `KECCAK_EMPTY` is the hash of the empty string.
- `ethtrie.rlp`: Recursive Length Prefix encoding and decoding. `encode` accepts bytes,
  non-negative integers, booleans and nested lists or tuples. `decode` returns `bytes`
  for strings and `list` for lists, and rejects non-canonical or trailing data with
  `RlpError`. `encoded_length` and `decode_uint` are also provided.
- `ethtrie.receipt`: transaction receipts, logs and the 2048-bit logs bloom (`Receipt`,
  `ReceiptPayload`, `Log`, `Bloom`).
- `ethtrie.nibbles`: nibble and hex-prefix path helpers (`to_nibs`, `to_encoded_path`,
  `prefix_nibs`, `lcp`).
- `ethtrie.mpt`: a sparse Merkle Patricia Trie (`MptNode`) and the `StateAccount` record.
  Parts of a trie may be kept only by their hash.
- `ethtrie.proof`: EIP-1186 proof handling (`StorageProof`, `AccountProof`,
  `parse_proof`, `mpt_from_proof`, `is_not_included`, `resolve_nodes`,
  `shorten_node_path`, `node_from_digest`, `proofs_to_tries`).

## Installation

```
pip install ethtrie
```

The only runtime dependency is `pycryptodome`, used for Keccak-256.

## Building a trie

```python
from ethtrie.mpt import MptNode

trie = MptNode()
trie.insert(b"dog", b"puppy")
trie.insert(b"horse", b"stallion")

assert trie.get(b"dog") == b"puppy"
print(trie.hash().hex())          # 32-byte root hash

encoded = trie.to_rlp()
assert MptNode.from_rlp(encoded).hash() == trie.hash()

trie.delete(b"dog")
```

`insert` returns `False` when the key already held the same value and raises
`ValueError` for an empty value. `insert_rlp` stores the RLP encoding of a value, and
`get_rlp` returns the RLP-decoded item (`bytes` or `list`); use `rlp.decode_uint` on the
raw value from `get` when an integer is wanted. `size()` counts traversable nodes and
`debug_rlp(decoder)` lists one line per leaf.

Branch nodes never hold values. If one key is a prefix of another, inserting the second
raises `ValueInBranchError`. A lookup, insertion or deletion that runs into a sub-trie
known only by its digest raises `NodeNotResolvedError`. Malformed encodings passed to
`MptNode.from_rlp` raise `MptError`, the base class of both.

## Receipts

```python
from ethtrie.receipt import Log, Receipt

log = Log(address=bytes(19) + b"\x11", topics=[bytes(32)], data=b"\x01")
receipt = Receipt.create(2, True, 21000, [log])
encoded = receipt.encode()       # type byte followed by the RLP payload
```

`Receipt.create` fills the bloom from each log's address and topics. A receipt of type 0
encodes as the bare payload. `Bloom` supports `in` to test membership.

## Proofs

`parse_proof` decodes a list of RLP-encoded proof nodes. `mpt_from_proof` joins them
into a trie that holds only the proven path, raising `MptError` if the nodes do not link
by hash. `proofs_to_tries` takes a state root and two mappings from address to
`AccountProof` (before and after a block) and returns the state trie together with, for
each address, its storage trie and the list of proven storage slots. It raises
`MptError` when a rebuilt trie does not match its root hash or an address has no
matching final proof.

## What it does not do

The package works only on data you pass in. It does not fetch proofs or blocks from a
node, does not execute transactions, and does not verify signatures or produce proofs of
execution.

## Running the tests

```
pip install -e ".[test]"
pytest
```