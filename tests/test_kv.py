from __future__ import annotations

from pathlib import Path

import pytest

from poap_ledger.db import MemoryKV, SQLiteKV, open_kv
from poap_ledger.db.kv import COUNTERS, OWNERS, TOKENS, Prefix, be_u64, from_be_u64


def test_get_absent_is_none_and_put_overwrites(kv):
    assert kv.get(b"k") is None
    assert not kv.has(b"k")
    kv.put(b"k", b"1")
    kv.put(b"k", b"2")
    assert kv.get(b"k") == b"2"
    assert kv.has(b"k")
    kv.delete(b"k")
    kv.delete(b"k")  # idempotent
    assert kv.get(b"k") is None


def test_iter_prefix_is_ordered_and_bounded(kv):
    for i in (3, 1, 2):
        kv.put(TOKENS.key(be_u64(i)), bytes([i]))
    kv.put(COUNTERS.key("x"), b"c")
    got = list(kv.iter_prefix(TOKENS.raw))
    assert [v for _, v in got] == [b"\x01", b"\x02", b"\x03"]
    assert all(k.startswith(TOKENS.raw) for k, _ in got)


def test_iter_prefix_handles_all_ff_prefix(kv):
    kv.put(b"\xff\xff\x01", b"a")
    kv.put(b"\xfe", b"b")
    assert list(kv.iter_prefix(b"\xff\xff")) == [(b"\xff\xff\x01", b"a")]


def test_batch_commits_atomically(kv):
    with kv.batch() as b:
        b.put(b"a", b"1")
        b.put(b"b", b"2")
        b.delete(b"missing")
    assert kv.get(b"a") == b"1"
    assert kv.get(b"b") == b"2"


def test_batch_rolls_back_on_exception(kv):
    kv.put(b"a", b"old")
    with pytest.raises(RuntimeError):
        with kv.batch() as b:
            b.put(b"a", b"new")
            b.put(b"c", b"3")
            raise RuntimeError("boom")
    assert kv.get(b"a") == b"old"
    assert kv.get(b"c") is None


def test_prefix_key_roundtrips_parts():
    p = Prefix("x")
    key = p.key(b"\x01" * 200, "name", 7)
    assert p.parts(key) == [b"\x01" * 200, b"name", b"\x07"]
    with pytest.raises(ValueError):
        OWNERS.parts(key)


def test_be_u64_bounds():
    assert from_be_u64(be_u64(2**64 - 1)) == 2**64 - 1
    with pytest.raises(ValueError):
        be_u64(2**64)
    with pytest.raises(ValueError):
        be_u64(-1)


def test_open_kv_uris(tmp_path: Path):
    assert isinstance(open_kv("memory://"), MemoryKV)
    db = tmp_path / "sub" / "l.db"
    store = open_kv(f"sqlite:///{db}")
    assert isinstance(store, SQLiteKV)
    store.put(b"k", b"v")
    store.close()
    assert db.exists()
    with pytest.raises(FileNotFoundError):
        open_kv(f"sqlite:///{tmp_path / 'nope.db'}", create=False)
    with pytest.raises(ValueError):
        open_kv("redis://localhost")


def test_sqlite_persists_across_reopen(tmp_path: Path):
    path = tmp_path / "p.db"
    a = SQLiteKV(path)
    with a.batch() as b:
        b.put(b"k", b"v")
    a.close()
    b2 = SQLiteKV(path, create=False)
    assert b2.get(b"k") == b"v"
    b2.close()
