"""Blockchain infrastructure: Merkle Patricia trie, Merkle tree, RLP, key-value and SQL storage, peer messaging helpers."""

__version__ = "0.1.0"