"""
In-memory KV for tests and ephemeral ledgers.

Batches stage their writes and apply them to the dict in one step on commit,
so a failed batch leaves the store exactly as it was.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterator, List, Optional, Tuple

_DELETE = object()


class MemoryBatch:
    __slots__ = ("_kv", "_ops", "_open")

    def __init__(self, kv: "MemoryKV") -> None:
        self._kv = kv
        self._ops: List[Tuple[bytes, object]] = []
        self._open = False

    def __enter__(self) -> "MemoryBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((bytes(key), bytes(value)))

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((bytes(key), _DELETE))

    def commit(self) -> None:
        if not self._open:
            return
        self._kv._apply(self._ops)
        self._ops = []
        self._open = False

    def rollback(self) -> None:
        self._ops = []
        self._open = False

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return None


class MemoryKV:
    """A dict-backed KV with ordered prefix iteration."""

    __slots__ = ("_m", "_lock")

    def __init__(self) -> None:
        self._m: Dict[bytes, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: bytes) -> Optional[bytes]:
        return self._m.get(bytes(key))

    def has(self, key: bytes) -> bool:
        return bytes(key) in self._m

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        with self._lock:
            items = sorted((k, v) for k, v in self._m.items() if k.startswith(prefix))
        yield from items

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._m[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._m.pop(bytes(key), None)

    def batch(self) -> MemoryBatch:
        return MemoryBatch(self)

    def close(self) -> None:
        pass

    def _apply(self, ops: List[Tuple[bytes, object]]) -> None:
        with self._lock:
            for k, v in ops:
                if v is _DELETE:
                    self._m.pop(k, None)
                else:
                    self._m[k] = v  # type: ignore[assignment]

    def __len__(self) -> int:
        return len(self._m)


__all__ = ["MemoryKV", "MemoryBatch"]
