"""Binary SHA-256 Merkle tree over 32-byte hashes."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional, Sequence

HASH_LEN = 32
NULL_HASH = bytes(HASH_LEN)


@dataclass
class MerkleNode:
    """A tree node; leaves have no children."""

    data: bytes
    left: Optional[MerkleNode] = None
    right: Optional[MerkleNode] = None

    @classmethod
    def _leaf(cls, hash_: bytes) -> MerkleNode:
        return cls(hashlib.sha256(hash_).digest())

    @classmethod
    def _branch(cls, left: MerkleNode, right: MerkleNode) -> MerkleNode:
        return cls(hashlib.sha256(left.data + right.data).digest(), left, right)


@dataclass
class MerkleTree:
    """A Merkle tree identified by its root node."""

    root_node: MerkleNode

    @classmethod
    def from_hashes(cls, hashes: Sequence[bytes]) -> MerkleTree:
        """Build a tree from leaf hashes.

        An odd number of leaves is padded by repeating the last one. On upper
        levels with an odd number of nodes the last node is left out.
        """
        leaves = [bytes(h) for h in hashes]
        for h in leaves:
            if len(h) != HASH_LEN:
                raise ValueError(f"hash must be {HASH_LEN} bytes, got {len(h)}")
        if not leaves:
            return cls(MerkleNode(NULL_HASH))
        if len(leaves) % 2:
            leaves.append(leaves[-1])

        nodes = [MerkleNode._leaf(h) for h in leaves]
        while True:
            nodes = [MerkleNode._branch(l, r) for l, r in zip(nodes[0::2], nodes[1::2])]
            if len(nodes) == 1:
                return cls(nodes[0])

    def root_hash(self) -> bytes:
        """Hash stored at the root."""
        return self.root_node.data