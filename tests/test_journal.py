from __future__ import annotations

import pytest

from poap_ledger.db import MemoryKV
from poap_ledger.state.journal import Journal


class _CountingKV(MemoryKV):
    """MemoryKV that records how many batches were opened."""

    __slots__ = ("batches",)

    def __init__(self) -> None:
        super().__init__()
        self.batches = 0

    def batch(self):
        self.batches += 1
        return super().batch()


def test_writes_invisible_to_store_until_commit():
    kv = _CountingKV()
    j = Journal(kv)
    j.begin()
    j.put(b"a", b"1")
    assert j.get(b"a") == b"1"
    assert kv.get(b"a") is None
    j.commit()
    assert kv.get(b"a") == b"1"
    assert kv.batches == 1


def test_revert_discards_everything():
    kv = MemoryKV()
    kv.put(b"a", b"base")
    j = Journal(kv)
    j.begin()
    j.put(b"a", b"changed")
    j.delete(b"a")
    j.emit("ev")
    assert j.get(b"a") is None
    j.revert()
    assert j.get(b"a") == b"base"
    assert j.pending_events() == []


def test_nested_commit_merges_into_parent_then_root_flushes_once():
    kv = _CountingKV()
    j = Journal(kv)
    j.begin()
    j.put(b"a", b"1")
    j.begin()
    j.put(b"b", b"2")
    j.emit("inner")
    assert j.commit() == []
    assert kv.batches == 0
    assert j.get(b"b") == b"2"
    events = j.commit()
    assert events == ["inner"]
    assert kv.batches == 1
    assert kv.get(b"a") == b"1" and kv.get(b"b") == b"2"


def test_nested_revert_keeps_parent_writes():
    j = Journal(MemoryKV())
    j.begin()
    j.put(b"a", b"1")
    j.begin()
    j.put(b"a", b"2")
    j.revert()
    assert j.get(b"a") == b"1"


def test_transaction_context_manager():
    kv = MemoryKV()
    j = Journal(kv)
    with j.transaction() as tx:
        j.put(b"k", b"v")
        j.emit(1)
    assert tx.committed and tx.events == [1]
    assert kv.get(b"k") == b"v"

    with pytest.raises(ValueError):
        with j.transaction() as tx2:
            j.put(b"k", b"other")
            raise ValueError("nope")
    assert not tx2.committed
    assert kv.get(b"k") == b"v"
    assert j.depth() == 0


def test_write_outside_transaction_is_an_error():
    j = Journal(MemoryKV())
    with pytest.raises(RuntimeError):
        j.put(b"k", b"v")
    with pytest.raises(RuntimeError):
        j.commit()


def test_iter_prefix_overlays_staged_writes():
    kv = MemoryKV()
    kv.put(b"p:1", b"a")
    kv.put(b"p:2", b"b")
    j = Journal(kv)
    j.begin()
    j.delete(b"p:1")
    j.put(b"p:3", b"c")
    assert list(j.iter_prefix(b"p:")) == [(b"p:2", b"b"), (b"p:3", b"c")]
    j.revert()
