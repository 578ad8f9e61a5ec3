"""Merkle Patricia trie backed by a NodeBase."""

from __future__ import annotations

from typing import Optional

from yuinfra.hasher import Hasher, LeafCallback
from yuinfra.mpt_encoding import keybytes_to_hex, prefix_len
from yuinfra.mpt_node import (
    FullNode,
    HashNode,
    MissingNodeError,
    Node,
    NodeFlag,
    ShortNode,
    ValueNode,
)
from yuinfra.nodebase import NodeBase

EMPTY_ROOT = bytes.fromhex("56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421")
_ZERO_HASH = bytes(32)


class Trie:
    """A Merkle Patricia trie whose nodes are loaded from ``db`` on demand.

    Not safe for concurrent use.
    """

    def __init__(self, root: bytes, db: NodeBase) -> None:
        if db is None:
            raise ValueError("a trie needs a database")
        self.db = db
        self.root: Optional[Node] = None
        root = bytes(root)
        if root != _ZERO_HASH and root != EMPTY_ROOT:
            self.root = self._resolve_hash(HashNode(root), b"")

    @staticmethod
    def _new_flag() -> NodeFlag:
        return NodeFlag(dirty=True)

    # lookups

    def get(self, key: bytes) -> Optional[bytes]:
        """Value stored under ``key``, or None.

        Raises MissingNodeError if a node on the path is not in the database.
        """
        value, new_root, did_resolve = self._try_get(self.root, keybytes_to_hex(key), 0)
        if did_resolve:
            self.root = new_root
        return value

    def _try_get(
        self, orig: Optional[Node], key: bytes, pos: int
    ) -> tuple[Optional[bytes], Optional[Node], bool]:
        if orig is None:
            return None, None, False
        if isinstance(orig, ValueNode):
            return bytes(orig), orig, False
        if isinstance(orig, ShortNode):
            n = orig
            end = pos + len(n.key)
            if len(key) - pos < len(n.key) or bytes(n.key) != key[pos:end]:
                return None, n, False
            value, new_node, did_resolve = self._try_get(n.val, key, end)
            if did_resolve:
                n = n.copy()
                n.val = new_node
            return value, n, did_resolve
        if isinstance(orig, FullNode):
            n = orig
            value, new_node, did_resolve = self._try_get(n.children[key[pos]], key, pos + 1)
            if did_resolve:
                n = n.copy()
                n.children[key[pos]] = new_node
            return value, n, did_resolve
        if isinstance(orig, HashNode):
            child = self._resolve_hash(orig, key[:pos])
            value, new_node, _ = self._try_get(child, key, pos)
            return value, new_node, True
        raise TypeError(f"{type(orig).__name__}: invalid node: {orig!r}")

    def prove(self, key: bytes) -> list[Optional[bytes]]:
        """Commit the trie and return a proof for ``key``.

        The proof starts with the root hash and the root's encoding, followed
        by the encodings of the hashed nodes on the path to ``key``.
        """
        hex_key = keybytes_to_hex(key)
        trie_hash = self.commit(None)
        pure = Trie(trie_hash, self.db)
        root_enc = self.db.get(trie_hash)
        tail, _, _ = pure._try_prove(pure.root, hex_key, 0)
        return [trie_hash, root_enc, *(tail or [])]

    def _try_prove(
        self, orig: Optional[Node], key: bytes, pos: int
    ) -> tuple[Optional[list[Optional[bytes]]], Optional[Node], bool]:
        if orig is None:
            return None, None, False
        if isinstance(orig, ValueNode):
            return [], orig, False
        if isinstance(orig, ShortNode):
            n = orig
            end = pos + len(n.key)
            if len(key) - pos < len(n.key) or bytes(n.key) != key[pos:end]:
                return [], n, False
            proof, new_node, did_resolve = self._try_prove(n.val, key, end)
            if did_resolve:
                n = n.copy()
                n.val = new_node
            return proof, n, did_resolve
        if isinstance(orig, FullNode):
            n = orig
            proof, new_node, did_resolve = self._try_prove(n.children[key[pos]], key, pos + 1)
            if did_resolve:
                n = n.copy()
                n.children[key[pos]] = new_node
            return proof, n, did_resolve
        if isinstance(orig, HashNode):
            child = self._resolve_hash(orig, key[:pos])
            enc = self.db.get(bytes(orig))
            tail, new_node, _ = self._try_prove(child, key, pos)
            return [enc, *(tail or [])], new_node, True
        raise TypeError(f"{type(orig).__name__}: invalid node: {orig!r}")

    # modifications

    def update(self, key: bytes, value: bytes) -> None:
        """Store ``value`` under ``key``; an empty value deletes the key."""
        hex_key = keybytes_to_hex(key)
        if value:
            _, self.root = self._insert(self.root, b"", hex_key, ValueNode(value))
        else:
            _, self.root = self._delete(self.root, b"", hex_key)

    def _insert(
        self, n: Optional[Node], prefix: bytes, key: bytes, value: Node
    ) -> tuple[bool, Optional[Node]]:
        if not key:
            if isinstance(n, ValueNode):
                return bytes(n) != bytes(value), value
            return True, value

        if isinstance(n, ShortNode):
            n_key = bytes(n.key)
            matchlen = prefix_len(key, n_key)
            if matchlen == len(n_key):
                dirty, nn = self._insert(n.val, prefix + key[:matchlen], key[matchlen:], value)
                if not dirty:
                    return False, n
                return True, ShortNode(n_key, nn, self._new_flag())

            branch = FullNode(flags=self._new_flag())
            _, old_child = self._insert(
                None, prefix + n_key[: matchlen + 1], n_key[matchlen + 1:], n.val
            )
            branch.children[n_key[matchlen]] = old_child
            _, new_child = self._insert(
                None, prefix + key[: matchlen + 1], key[matchlen + 1:], value
            )
            branch.children[key[matchlen]] = new_child
            if matchlen == 0:
                return True, branch
            return True, ShortNode(key[:matchlen], branch, self._new_flag())

        if isinstance(n, FullNode):
            dirty, nn = self._insert(n.children[key[0]], prefix + key[:1], key[1:], value)
            if not dirty:
                return False, n
            n = n.copy()
            n.flags = self._new_flag()
            n.children[key[0]] = nn
            return True, n

        if n is None:
            return True, ShortNode(key, value, self._new_flag())

        if isinstance(n, HashNode):
            rn = self._resolve_hash(n, prefix)
            dirty, nn = self._insert(rn, prefix, key, value)
            if not dirty:
                return False, rn
            return True, nn

        raise TypeError(f"{type(n).__name__}: invalid node: {n!r}")

    def delete(self, key: bytes) -> None:
        """Remove any value stored under ``key``."""
        _, self.root = self._delete(self.root, b"", keybytes_to_hex(key))

    def _delete(
        self, n: Optional[Node], prefix: bytes, key: bytes
    ) -> tuple[bool, Optional[Node]]:
        if isinstance(n, ShortNode):
            n_key = bytes(n.key)
            matchlen = prefix_len(key, n_key)
            if matchlen < len(n_key):
                return False, n
            if matchlen == len(key):
                return True, None
            dirty, child = self._delete(n.val, prefix + key[: len(n_key)], key[len(n_key):])
            if not dirty:
                return False, n
            if isinstance(child, ShortNode):
                return True, ShortNode(n_key + bytes(child.key), child.val, self._new_flag())
            return True, ShortNode(n_key, child, self._new_flag())

        if isinstance(n, FullNode):
            dirty, nn = self._delete(n.children[key[0]], prefix + key[:1], key[1:])
            if not dirty:
                return False, n
            n = n.copy()
            n.flags = self._new_flag()
            n.children[key[0]] = nn

            remaining = [i for i, child in enumerate(n.children) if child is not None]
            if len(remaining) == 1:
                pos = remaining[0]
                if pos != 16:
                    cnode = self._resolve(n.children[pos], prefix)
                    if isinstance(cnode, ShortNode):
                        return True, ShortNode(
                            bytes([pos]) + bytes(cnode.key), cnode.val, self._new_flag()
                        )
                return True, ShortNode(bytes([pos]), n.children[pos], self._new_flag())
            return True, n

        if isinstance(n, ValueNode):
            return True, None

        if n is None:
            return False, None

        if isinstance(n, HashNode):
            rn = self._resolve_hash(n, prefix)
            dirty, nn = self._delete(rn, prefix, key)
            if not dirty:
                return False, rn
            return True, nn

        raise TypeError(f"{type(n).__name__}: invalid node: {n!r} ({key!r})")

    # resolution and hashing

    def _resolve(self, n: Optional[Node], prefix: bytes) -> Optional[Node]:
        if isinstance(n, HashNode):
            return self._resolve_hash(n, prefix)
        return n

    def _resolve_hash(self, n: HashNode, prefix: bytes) -> Node:
        resolved = self.db.node(bytes(n))
        if resolved is None:
            raise MissingNodeError(bytes(n), prefix)
        return resolved

    def hash(self) -> bytes:
        """Root hash of the trie, computed without writing to the database."""
        hashed, cached = self._hash_root(None, None)
        self.root = cached
        return bytes(hashed)

    def commit(self, on_leaf: Optional[LeafCallback] = None) -> bytes:
        """Write all dirty nodes to the database and return the root hash."""
        self.db.begin()
        hashed, cached = self._hash_root(self.db, on_leaf)
        self.db.commit()
        self.root = cached
        return bytes(hashed)

    def _hash_root(
        self, db: Optional[NodeBase], on_leaf: Optional[LeafCallback]
    ) -> tuple[Node, Optional[Node]]:
        if self.root is None:
            return HashNode(EMPTY_ROOT), None
        return Hasher(on_leaf).hash(self.root, db, True)