"""
poap_ledger.db
==============

Backend selection for the ledger's key-value substrate.

URIs
----
- "memory://"                  → MemoryKV (process-local, tests)
- "sqlite:///path/to/file.db"  → SQLiteKV file
- "sqlite:///:memory:"         → in-memory SQLite
- bare path ending in ".db"    → SQLiteKV file

Example
-------
>>> from poap_ledger.db import open_kv
>>> kv = open_kv("memory://")
>>> with kv.batch() as b:
...     b.put(b"m:key", b"hello")
>>> kv.get(b"m:key")
b'hello'
"""

from __future__ import annotations

from typing import Tuple

from .kv import KV, Batch, Prefix, ReadOnlyKV, be_u64, from_be_u64
from .memory import MemoryKV
from .sqlite import SQLiteKV


def _parse_uri(uri: str) -> Tuple[str, str]:
    u = uri.strip()
    if u.startswith("memory://"):
        return ("memory", "")
    if u.startswith("sqlite:///"):
        return ("sqlite", u[len("sqlite:///") :])
    if u.endswith(".db") and "://" not in u:
        return ("sqlite", u)
    raise ValueError(f"Unsupported DB URI: {uri!r}")


def open_kv(uri: str, create: bool = True) -> KV:
    """
    Open a KV database by URI. See module docstring for supported forms.

    Raises:
        ValueError for unsupported URIs.
        FileNotFoundError when `create` is False and the SQLite file is missing.
    """
    backend, target = _parse_uri(uri)
    if backend == "memory":
        return MemoryKV()
    return SQLiteKV(target or ":memory:", create=create)


__all__ = [
    "KV",
    "ReadOnlyKV",
    "Batch",
    "Prefix",
    "be_u64",
    "from_be_u64",
    "MemoryKV",
    "SQLiteKV",
    "open_kv",
]
