"""Key-value storage: embedded backends, prefixed views and transactions."""

from __future__ import annotations

import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Mapping, Optional

import lmdb


class StoreType(Enum):
    """Where a store runs."""

    EMBEDDED = 0
    SERVER = 1


class StoreKind(Enum):
    """What kind of data model a store offers."""

    KV = 0
    SQL = 1
    FS = 2


class KvError(Exception):
    """A key-value store operation failed."""


@dataclass
class KVConf:
    """Selects a key-value backend and where it keeps its data."""

    kv_type: str
    path: str


def make_key(prefix: str, key: bytes) -> bytes:
    """Join a namespace prefix and a key into the stored key."""
    return prefix.encode("utf-8") + bytes(key)


class KvTxn(ABC):
    """A write transaction scoped to one prefix.

    Used as a context manager it commits on success and rolls back when the
    block raises.
    """

    @abstractmethod
    def get(self, key: bytes) -> Optional[bytes]:
        """Value for ``key`` as seen by this transaction, or None."""

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> None:
        """Stage a write of ``value`` under ``key``."""

    @abstractmethod
    def delete(self, key: bytes) -> None:
        """Stage the removal of ``key``."""

    @abstractmethod
    def commit(self) -> None:
        """Apply all staged changes atomically."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard all staged changes."""

    def __enter__(self) -> KvTxn:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()


class Kvdb(ABC):
    """A key-value database whose keys are namespaced by string prefixes."""

    store_type = StoreType.EMBEDDED
    store_kind = StoreKind.KV

    @abstractmethod
    def new(self, prefix: str) -> KvInstance:
        """A view of this database restricted to ``prefix``."""

    @abstractmethod
    def get(self, prefix: str, key: bytes) -> Optional[bytes]:
        """Stored value, or None when the key is absent."""

    @abstractmethod
    def set(self, prefix: str, key: bytes, value: bytes) -> None:
        """Store ``value`` under the prefixed key."""

    @abstractmethod
    def delete(self, prefix: str, key: bytes) -> None:
        """Remove the prefixed key if present."""

    @abstractmethod
    def exist(self, prefix: str, key: bytes) -> bool:
        """Whether the prefixed key holds a value."""

    @abstractmethod
    def new_kv_txn(self, prefix: str) -> KvTxn:
        """Start a transaction over keys under ``prefix``."""

    @abstractmethod
    def close(self) -> None:
        """Release the database."""

    @abstractmethod
    def _apply(self, batch: Mapping[bytes, Optional[bytes]]) -> None:
        """Atomically write full keys; a None value deletes the key."""

    def __enter__(self) -> Kvdb:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class KvInstance:
    """A prefixed view of a Kvdb."""

    def __init__(self, prefix: str, kvdb: Kvdb) -> None:
        self.prefix = prefix
        self.kvdb = kvdb

    def get(self, key: bytes) -> Optional[bytes]:
        return self.kvdb.get(self.prefix, key)

    def set(self, key: bytes, value: bytes) -> None:
        self.kvdb.set(self.prefix, key, value)

    def delete(self, key: bytes) -> None:
        self.kvdb.delete(self.prefix, key)

    def exist(self, key: bytes) -> bool:
        return self.kvdb.exist(self.prefix, key)

    def new_kv_txn(self) -> KvTxn:
        return self.kvdb.new_kv_txn(self.prefix)


class _BufferedTxn(KvTxn):
    """Stages writes in memory and applies them in one batch on commit."""

    def __init__(self, kvdb: Kvdb, prefix: str) -> None:
        self._kvdb = kvdb
        self._prefix = prefix
        self._pending: dict[bytes, Optional[bytes]] = {}
        self._finished = False

    def _check_open(self) -> None:
        if self._finished:
            raise KvError("transaction already finished")

    def get(self, key: bytes) -> Optional[bytes]:
        self._check_open()
        full = make_key(self._prefix, key)
        if full in self._pending:
            return self._pending[full]
        return self._kvdb.get(self._prefix, key)

    def set(self, key: bytes, value: bytes) -> None:
        self._check_open()
        self._pending[make_key(self._prefix, key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        self._check_open()
        self._pending[make_key(self._prefix, key)] = None

    def commit(self) -> None:
        self._check_open()
        self._finished = True
        self._kvdb._apply(self._pending)
        self._pending = {}

    def rollback(self) -> None:
        self._check_open()
        self._finished = True
        self._pending = {}


class SqliteKvdb(Kvdb):
    """Single-file embedded store with ordered keys."""

    def __init__(self, path: str) -> None:
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key BLOB PRIMARY KEY, value BLOB NOT NULL)"
            )

    def new(self, prefix: str) -> KvInstance:
        return KvInstance(prefix, self)

    def get(self, prefix: str, key: bytes) -> Optional[bytes]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key = ?", (make_key(prefix, key),)
            ).fetchone()
        return bytes(row[0]) if row is not None else None

    def set(self, prefix: str, key: bytes, value: bytes) -> None:
        self._apply({make_key(prefix, key): bytes(value)})

    def delete(self, prefix: str, key: bytes) -> None:
        self._apply({make_key(prefix, key): None})

    def exist(self, prefix: str, key: bytes) -> bool:
        return self.get(prefix, key) is not None

    def iterate(self, prefix: str, key: bytes) -> Iterator[tuple[bytes, bytes]]:
        """Yield ``(full_key, value)`` for keys starting with prefix+key, in order."""
        start = make_key(prefix, key)
        entries: list[tuple[bytes, bytes]] = []
        with self._lock:
            cursor = self._conn.execute(
                "SELECT key, value FROM kv WHERE key >= ? ORDER BY key", (start,)
            )
            for stored_key, value in cursor:
                stored_key = bytes(stored_key)
                if not stored_key.startswith(start):
                    break
                entries.append((stored_key, bytes(value)))
        yield from entries

    def new_kv_txn(self, prefix: str) -> KvTxn:
        return _BufferedTxn(self, prefix)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _apply(self, batch: Mapping[bytes, Optional[bytes]]) -> None:
        with self._lock:
            try:
                with self._conn:
                    for full, value in batch.items():
                        if value is None:
                            self._conn.execute("DELETE FROM kv WHERE key = ?", (full,))
                        else:
                            self._conn.execute(
                                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                                (full, value),
                            )
            except sqlite3.Error as exc:
                raise KvError(str(exc)) from exc


class LmdbKvdb(Kvdb):
    """Memory-mapped embedded store kept in a directory."""

    def __init__(self, path: str, map_size: int = 1 << 30) -> None:
        self._lock = threading.Lock()
        try:
            self._env = lmdb.open(path, map_size=map_size, subdir=True)
        except lmdb.Error as exc:
            raise KvError(str(exc)) from exc

    def new(self, prefix: str) -> KvInstance:
        return KvInstance(prefix, self)

    def get(self, prefix: str, key: bytes) -> Optional[bytes]:
        # Lookup failures are reported as a missing value.
        with self._lock:
            try:
                with self._env.begin() as txn:
                    value = txn.get(make_key(prefix, key))
            except lmdb.Error:
                return None
        return bytes(value) if value is not None else None

    def set(self, prefix: str, key: bytes, value: bytes) -> None:
        self._apply({make_key(prefix, key): bytes(value)})

    def delete(self, prefix: str, key: bytes) -> None:
        self._apply({make_key(prefix, key): None})

    def exist(self, prefix: str, key: bytes) -> bool:
        return self.get(prefix, key) is not None

    def new_kv_txn(self, prefix: str) -> KvTxn:
        return _BufferedTxn(self, prefix)

    def close(self) -> None:
        with self._lock:
            self._env.close()

    def _apply(self, batch: Mapping[bytes, Optional[bytes]]) -> None:
        with self._lock:
            try:
                with self._env.begin(write=True) as txn:
                    for full, value in batch.items():
                        if value is None:
                            txn.delete(full)
                        else:
                            txn.put(full, value)
            except lmdb.Error as exc:
                raise KvError(str(exc)) from exc


_BACKENDS = {
    "bolt": SqliteKvdb,
    "sqlite": SqliteKvdb,
    "pebble": LmdbKvdb,
    "lmdb": LmdbKvdb,
}


def new_kvdb(cfg: KVConf) -> Kvdb:
    """Open the backend that ``cfg.kv_type`` names at ``cfg.path``."""
    backend = _BACKENDS.get(cfg.kv_type)
    if backend is None:
        raise KvError(f"no kvdb type: {cfg.kv_type}")
    return backend(cfg.path)