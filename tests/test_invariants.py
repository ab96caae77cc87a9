from __future__ import annotations

import random
from pathlib import Path

import pytest

from conftest import ALICE, BOB, OWNER
from poap_ledger.db import SQLiteKV
from poap_ledger.db.kv import OWNERS, PROJECTS, TOKENS, be_u64
from poap_ledger.encoding import dumps_id_list
from poap_ledger.errors import InvariantViolation, LedgerError
from poap_ledger.runtime.host import LedgerHost
from poap_ledger.state.invariants import verify_invariants


def _random_session(host: LedgerHost, seed: int, steps: int = 60) -> int:
    rng = random.Random(seed)
    ok = 0
    for _ in range(steps):
        pid = bytes([rng.randrange(12)]) * 32
        who = rng.choice([ALICE, BOB])
        try:
            if rng.random() < 0.7:
                host.mint(who, pid, rng.choice([ALICE, BOB]), f"ipfs://{rng.randrange(1000)}")
                ok += 1
            else:
                host.publish(who, pid)
        except LedgerError:
            pass
        verify_invariants(host.state)
    return ok


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_invariants_hold_after_random_sequences(make_host, kv, seed):
    host = make_host(kv)
    minted = _random_session(host, seed)
    summary = verify_invariants(host.state)
    assert summary["total_issued"] == minted == host.total_issued()
    assert summary["projects"] == minted
    assert summary["owner_entries"] == minted


def test_invariants_survive_sqlite_reopen(tmp_path: Path, make_host):
    path = tmp_path / "ledger.db"
    host = make_host(SQLiteKV(path))
    minted = _random_session(host, seed=7)
    published = host.total_projects_published()
    alice_tokens = host.get_user_tokens(ALICE)
    host.close()

    reopened = LedgerHost.open(SQLiteKV(path, create=False))
    assert reopened.owner() == OWNER
    assert reopened.total_issued() == minted
    assert reopened.total_projects_published() == published
    assert reopened.get_user_tokens(ALICE) == alice_tokens
    assert reopened.verify()["total_issued"] == minted
    reopened.close()


def _corrupt(host: LedgerHost, key: bytes, value: bytes) -> None:
    with host.state.journal.transaction():
        host.state.journal.put(key, value)


def test_detects_project_index_pointing_elsewhere(make_host):
    host = make_host()
    host.mint(ALICE, b"\x01" * 32, BOB, "u")
    host.mint(ALICE, b"\x02" * 32, BOB, "u")
    _corrupt(host, PROJECTS.key(b"\x01" * 32), be_u64(1))
    with pytest.raises(InvariantViolation):
        verify_invariants(host.state)


def test_detects_owner_listing_foreign_token(make_host):
    host = make_host()
    host.mint(ALICE, b"\x01" * 32, BOB, "u")
    _corrupt(host, OWNERS.key(ALICE), dumps_id_list([0]))
    with pytest.raises(InvariantViolation):
        verify_invariants(host.state)


def test_detects_counter_mismatch(make_host):
    host = make_host()
    host.mint(ALICE, b"\x01" * 32, BOB, "u")
    with host.state.journal.transaction():
        host.state.journal.delete(TOKENS.key(be_u64(0)))
    with pytest.raises(InvariantViolation) as ei:
        verify_invariants(host.state)
    assert ei.value.code == "LEDGER/INVARIANT"
