"""
poap_ledger.state.journal: staged writes, checkpoints, revert/commit.

A copy-on-write write journal layered over a `KV`. Writes go to the top
overlay; reads consult overlays top → bottom and then the store. `commit()`
merges the top overlay into its parent, or, when it is the outermost
checkpoint, flushes it into the store through a single `KV.batch()`.
`revert()` discards the top overlay.

Events raised while a checkpoint is open are staged on that overlay and travel
with its writes: they are dropped by `revert()` and handed back by the
outermost `commit()` only after the batch has been written.

Intended usage
--------------
    j = Journal(kv)
    with j.transaction() as tx:
        j.put(key, b"value")
        j.emit(SomeEvent(...))
    deliver(tx.events)          # only reached if the batch committed

Writing with no open checkpoint is an error: every mutation is part of some
all-or-nothing unit.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from poap_ledger.db.kv import KV


@dataclass
class _Overlay:
    """
    A single journal layer. `writes` maps key → value, `None` marks a deletion.
    """

    writes: Dict[bytes, Optional[bytes]] = field(default_factory=dict)
    events: List[Any] = field(default_factory=list)


@dataclass
class TxResult:
    """Filled in when a `Journal.transaction()` block commits."""

    events: List[Any] = field(default_factory=list)
    committed: bool = False


def _b(x: Any, *, name: str) -> bytes:
    if not isinstance(x, (bytes, bytearray, memoryview)):
        raise TypeError(f"{name} must be bytes-like")
    return bytes(x)


class Journal:
    """
    Overlay stack above a KV store.

    The journal itself exposes the read/write KV surface (`get`, `has`,
    `iter_prefix`, `put`, `delete`) so tables can be bound to it directly.
    """

    def __init__(self, kv: KV) -> None:
        self._kv = kv
        self._layers: List[_Overlay] = []

    @property
    def kv(self) -> KV:
        return self._kv

    # ------------------------------------------------------------------ #
    # Checkpointing
    # ------------------------------------------------------------------ #

    def depth(self) -> int:
        return len(self._layers)

    def in_transaction(self) -> bool:
        return bool(self._layers)

    def begin(self) -> int:
        """Open a checkpoint. Returns the new depth."""
        self._layers.append(_Overlay())
        return len(self._layers)

    def commit(self) -> List[Any]:
        """
        Commit the top overlay.

        Nested: merged into the parent, returns [].
        Outermost: written to the store in one batch, returns the staged events.
        If the batch fails the overlay is gone and the store is unchanged.
        """
        if not self._layers:
            raise RuntimeError("commit without an open checkpoint")
        top = self._layers.pop()
        if self._layers:
            parent = self._layers[-1]
            parent.writes.update(top.writes)
            parent.events.extend(top.events)
            return []
        self._flush(top)
        return list(top.events)

    def revert(self) -> None:
        if not self._layers:
            raise RuntimeError("revert without an open checkpoint")
        self._layers.pop()

    @contextmanager
    def transaction(self) -> Iterator[TxResult]:
        """
        Run a block inside a checkpoint: commit on normal exit, revert and
        re-raise on any exception.
        """
        res = TxResult()
        self.begin()
        try:
            yield res
        except BaseException:
            self.revert()
            raise
        res.events = self.commit()
        res.committed = True

    def _flush(self, layer: _Overlay) -> None:
        if not layer.writes:
            return
        with self._kv.batch() as b:
            for k, v in layer.writes.items():
                if v is None:
                    b.delete(k)
                else:
                    b.put(k, v)

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def emit(self, event: Any) -> None:
        """Stage an event on the open checkpoint."""
        self._top("emit").events.append(event)

    def pending_events(self) -> List[Any]:
        out: List[Any] = []
        for layer in self._layers:
            out.extend(layer.events)
        return out

    # ------------------------------------------------------------------ #
    # KV surface
    # ------------------------------------------------------------------ #

    def _top(self, op: str) -> _Overlay:
        if not self._layers:
            raise RuntimeError(f"{op} outside of a transaction")
        return self._layers[-1]

    def get(self, key: bytes) -> Optional[bytes]:
        k = _b(key, name="key")
        for layer in reversed(self._layers):
            if k in layer.writes:
                return layer.writes[k]
        return self._kv.get(k)

    def has(self, key: bytes) -> bool:
        k = _b(key, name="key")
        for layer in reversed(self._layers):
            if k in layer.writes:
                return layer.writes[k] is not None
        return self._kv.has(k)

    def put(self, key: bytes, value: bytes) -> None:
        self._top("put").writes[_b(key, name="key")] = _b(value, name="value")

    def delete(self, key: bytes) -> None:
        self._top("delete").writes[_b(key, name="key")] = None

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """Visible (key, value) pairs under `prefix`, staged writes applied, key order."""
        visible: Dict[bytes, Optional[bytes]] = dict(self._kv.iter_prefix(prefix))
        for layer in self._layers:
            for k, v in layer.writes.items():
                if k.startswith(prefix):
                    visible[k] = v
        for k in sorted(visible):
            v = visible[k]
            if v is not None:
                yield k, v


__all__ = ["Journal", "TxResult"]
