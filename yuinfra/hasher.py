"""Collapsing trie nodes into their hashes and storing their encodings."""

from __future__ import annotations

from typing import Callable, Optional

from Crypto.Hash import keccak

from yuinfra import rlp
from yuinfra.mpt_encoding import hex_to_compact
from yuinfra.mpt_node import FullNode, HashNode, Node, ShortNode, ValueNode
from yuinfra.nodebase import NodeBase

LeafCallback = Callable[[bytes, bytes], object]


def keccak256(data: bytes) -> bytes:
    """Legacy Keccak-256 digest of ``data``."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


def _rlp_item(n: Node):
    if isinstance(n, (FullNode, ShortNode)):
        return n.to_rlp_item()
    return bytes(n)


class Hasher:
    """Computes node hashes, optionally writing the encodings to a NodeBase.

    ``on_leaf`` is called with ``(value, parent_hash)`` for every value held
    directly by a node that gets stored.
    """

    def __init__(self, on_leaf: Optional[LeafCallback] = None) -> None:
        self.on_leaf = on_leaf

    def hash(
        self, n: Node, db: Optional[NodeBase], force: bool
    ) -> tuple[Optional[Node], Optional[Node]]:
        """Collapse ``n`` into a hash node.

        Returns the collapsed form and a copy of ``n`` with the computed hash
        cached in it.
        """
        cached_hash, dirty = n.cache()
        if cached_hash is not None:
            if db is None:
                return cached_hash, n
            if not dirty:
                if isinstance(n, (FullNode, ShortNode)):
                    return cached_hash, cached_hash
                return cached_hash, n

        collapsed, cached = self.hash_children(n, db)
        hashed = self.store(collapsed, db, force)

        new_hash = hashed if isinstance(hashed, HashNode) else None
        if isinstance(cached, (ShortNode, FullNode)):
            cached.flags.hash = new_hash
            if db is not None:
                cached.flags.dirty = False
        return hashed, cached

    def hash_children(self, original: Node, db: Optional[NodeBase]) -> tuple[Node, Node]:
        """Replace the children of ``original`` by their hashes.

        Returns the collapsed node and a copy of the original whose children
        carry their cached hashes.
        """
        if isinstance(original, ShortNode):
            collapsed, cached = original.copy(), original.copy()
            collapsed.key = hex_to_compact(original.key)
            cached.key = bytes(original.key)
            if not isinstance(original.val, ValueNode):
                collapsed.val, cached.val = self.hash(original.val, db, False)
            return collapsed, cached

        if isinstance(original, FullNode):
            collapsed, cached = original.copy(), original.copy()
            for i, child in enumerate(original.children[:16]):
                if child is not None:
                    collapsed.children[i], cached.children[i] = self.hash(child, db, False)
            cached.children[16] = original.children[16]
            return collapsed, cached

        return original, original

    def store(self, n: Optional[Node], db: Optional[NodeBase], force: bool) -> Optional[Node]:
        """Hash ``n`` if its encoding is large enough (or ``force``), writing it to ``db``.

        Nodes encoding to fewer than 32 bytes stay embedded in their parent
        and are returned unchanged.
        """
        if n is None or isinstance(n, HashNode):
            return n

        enc = rlp.encode(_rlp_item(n))
        if len(enc) < 32 and not force:
            return n

        node_hash, _ = n.cache()
        if node_hash is None:
            node_hash = HashNode(keccak256(enc))

        if db is not None:
            with db.lock:
                db.insert(bytes(node_hash), enc)

            if self.on_leaf is not None:
                parent = bytes(node_hash)
                if isinstance(n, ShortNode):
                    if isinstance(n.val, ValueNode):
                        self.on_leaf(bytes(n.val), parent)
                elif isinstance(n, FullNode):
                    for child in n.children[:16]:
                        if isinstance(child, ValueNode):
                            self.on_leaf(bytes(child), parent)
        return node_hash