from __future__ import annotations

import pytest

from conftest import ALICE, OWNER, P0
from poap_ledger import encoding
from poap_ledger.db import MemoryKV
from poap_ledger.db.kv import TOKENS, be_u64
from poap_ledger.encoding import CBORError
from poap_ledger.errors import NotInitialized
from poap_ledger.ledger.types import Metadata
from poap_ledger.state.tables import TOTAL_ISSUED, TOTAL_PROJECTS_PUBLISHED, LedgerState


def test_initialize_zeroes_counters_and_records_owner():
    kv = MemoryKV()
    assert not LedgerState.is_initialized(kv)
    st = LedgerState.initialize(kv, OWNER)
    assert st.owner == OWNER
    assert st.total_issued() == 0
    assert st.total_projects_published() == 0
    assert LedgerState.open(kv).owner == OWNER


def test_open_requires_initialized_store():
    with pytest.raises(NotInitialized) as ei:
        LedgerState.open(MemoryKV())
    assert ei.value.code == "LEDGER/NOT_INITIALIZED"


def test_absent_reads_default():
    st = LedgerState.initialize(MemoryKV(), OWNER)
    assert st.metadata.get(0) is None
    assert st.metadata.get(2**64) is None
    assert st.projects.get(P0) is None
    assert not st.projects.contains(P0)
    assert st.owners.get(ALICE) == []
    assert st.counters.get("unknown") == 0


def test_counters_increment_returns_new_value():
    st = LedgerState.initialize(MemoryKV(), OWNER)
    with st.journal.transaction():
        assert st.counters.increment(TOTAL_PROJECTS_PUBLISHED) == 1
        assert st.counters.increment(TOTAL_PROJECTS_PUBLISHED) == 2
    assert st.total_projects_published() == 2
    assert st.counters.get(TOTAL_ISSUED) == 0


def test_metadata_encoding_is_canonical():
    md = Metadata(token_id=1, owner=ALICE, project_id=P0, metadata_uri="u", timestamp=9)
    reordered = {k: md.to_record()[k] for k in reversed(list(md.to_record()))}
    assert encoding.dumps(md.to_record()) == encoding.dumps(reordered)
    assert Metadata.from_record(encoding.loads(encoding.dumps(md.to_record()))) == md


def test_corrupt_record_raises():
    kv = MemoryKV()
    st = LedgerState.initialize(kv, OWNER)
    kv.put(TOKENS.key(be_u64(0)), b"\xff\xff")
    with pytest.raises(CBORError):
        st.metadata.get(0)
    kv.put(TOKENS.key(be_u64(1)), encoding.dumps([1, 2]))
    with pytest.raises(CBORError):
        st.metadata.get(1)
