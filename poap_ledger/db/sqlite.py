"""
SQLite-backed ledger store.

One table, `kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)`, ordered by raw key
bytes. The connection runs in autocommit mode; a `SQLiteBatch` is a single
`BEGIN IMMEDIATE ... COMMIT`, so a journal flush lands completely or not at
all. URIs are resolved by `poap_ledger.db.open_kv`; this module only takes
filesystem paths (or ":memory:").
"""

from __future__ import annotations

import os
import sqlite3
from typing import Iterator, Optional, Tuple, Union

PathLike = Union[str, "os.PathLike[str]"]

MEMORY = ":memory:"

_PRAGMAS = (
    ("journal_mode", "WAL"),
    ("synchronous", "NORMAL"),
    ("temp_store", "MEMORY"),
)

_SCHEMA = "CREATE TABLE IF NOT EXISTS kv (k BLOB PRIMARY KEY, v BLOB NOT NULL)"
_GET = "SELECT v FROM kv WHERE k = ?"
_PUT = "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v"
_DEL = "DELETE FROM kv WHERE k = ?"


def _upper_bound(prefix: bytes) -> Optional[bytes]:
    """First key past every key starting with `prefix`; None if unbounded."""
    head = prefix.rstrip(b"\xff")
    if not head:
        return None
    return head[:-1] + bytes([head[-1] + 1])


class SQLiteBatch:
    __slots__ = ("_conn", "_open")

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._open = False

    def __enter__(self) -> "SQLiteBatch":
        if self._open:
            raise RuntimeError("batch already open")
        self._conn.execute("BEGIN IMMEDIATE")
        self._open = True
        return self

    def _require_open(self) -> None:
        if not self._open:
            raise RuntimeError("batch not open")

    def put(self, key: bytes, value: bytes) -> None:
        self._require_open()
        self._conn.execute(_PUT, (key, value))

    def delete(self, key: bytes) -> None:
        self._require_open()
        self._conn.execute(_DEL, (key,))

    def commit(self) -> None:
        if self._open:
            self._open = False
            self._conn.execute("COMMIT")

    def rollback(self) -> None:
        if self._open:
            self._open = False
            self._conn.execute("ROLLBACK")

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return None


class SQLiteKV:
    """
    Durable `KV` over the stdlib `sqlite3` driver.

    `create=False` refuses to make a new file, which is how the CLI tells an
    uninitialized ledger from an empty one. Writers are serialized by the
    ledger host, hence `check_same_thread=False`.
    """

    __slots__ = ("_conn",)

    def __init__(self, path: PathLike = MEMORY, *, create: bool = True) -> None:
        target = os.fspath(path) or MEMORY
        if target != MEMORY:
            if not create and not os.path.exists(target):
                raise FileNotFoundError(f"no ledger store at {target}")
            os.makedirs(os.path.dirname(os.path.abspath(target)), exist_ok=True)
        self._conn = sqlite3.connect(target, isolation_level=None, check_same_thread=False)
        for name, value in _PRAGMAS:
            if name == "journal_mode" and target == MEMORY:
                value = "MEMORY"
            self._conn.execute(f"PRAGMA {name}={value}")
        self._conn.execute(_SCHEMA)

    def get(self, key: bytes) -> Optional[bytes]:
        row = self._conn.execute(_GET, (key,)).fetchone()
        return None if row is None else bytes(row[0])

    def has(self, key: bytes) -> bool:
        return self.get(key) is not None

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        hi = _upper_bound(prefix)
        if hi is None:
            rows = self._conn.execute("SELECT k, v FROM kv WHERE k >= ? ORDER BY k", (prefix,)).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT k, v FROM kv WHERE k >= ? AND k < ? ORDER BY k", (prefix, hi)
            ).fetchall()
        # Rows are fetched up front so callers may write while iterating.
        for k, v in rows:
            k = bytes(k)
            if k.startswith(prefix):
                yield k, bytes(v)

    def put(self, key: bytes, value: bytes) -> None:
        self._conn.execute(_PUT, (key, value))

    def delete(self, key: bytes) -> None:
        self._conn.execute(_DEL, (key,))

    def batch(self) -> SQLiteBatch:
        return SQLiteBatch(self._conn)

    def close(self) -> None:
        self._conn.close()


__all__ = ["SQLiteKV", "SQLiteBatch"]
