"""Persistent store of encoded trie nodes keyed by hash."""

from __future__ import annotations

import threading
from typing import Optional

from yuinfra.kv import KvError, Kvdb, KvTxn
from yuinfra.mpt_node import Node, must_decode_node

MPT_DATA = "mpt-data"


class NodeBase:
    """Trie node storage in its own namespace of a key-value database.

    Writes go through a transaction opened with :meth:`begin` and applied by
    :meth:`commit`.
    """

    def __init__(self, kvdb: Kvdb) -> None:
        self._db = kvdb.new(MPT_DATA)
        self._txn: Optional[KvTxn] = None
        self.lock = threading.Lock()

    def node(self, hash_: bytes) -> Optional[Node]:
        """Decoded node stored under ``hash_``, or None when absent."""
        try:
            enc = self._db.get(hash_)
        except KvError:
            return None
        if enc is None:
            return None
        return must_decode_node(hash_, enc)

    def get(self, key: bytes) -> Optional[bytes]:
        """Raw bytes stored under ``key``."""
        return self._db.get(key)

    def close(self) -> None:
        """Discard any transaction still open; the database is owned elsewhere."""
        txn, self._txn = self._txn, None
        if txn is not None:
            txn.rollback()

    def begin(self) -> None:
        """Open a write transaction."""
        self._txn = self._db.new_kv_txn()

    def _require_txn(self) -> KvTxn:
        if self._txn is None:
            raise KvError("no transaction in progress")
        return self._txn

    def insert(self, hash_: bytes, blob: bytes) -> None:
        """Stage ``blob`` under ``hash_`` in the open transaction."""
        self._require_txn().set(hash_, blob)

    def commit(self) -> None:
        """Apply the open transaction."""
        txn = self._require_txn()
        self._txn = None
        txn.commit()