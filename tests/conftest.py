"""
Shared pytest fixtures:
- Addresses / project ids used across the suite
- Fresh KV stores (memory and SQLite) and initialized ledger hosts
- A clean config + logging context per test
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator

import pytest

from poap_ledger import logging as plog
from poap_ledger.config import AccessMode, load_config, reload_config
from poap_ledger.db import MemoryKV, SQLiteKV
from poap_ledger.runtime.clock import ManualClock
from poap_ledger.runtime.events import MemoryEventSink
from poap_ledger.runtime.host import LedgerHost

OWNER = b"\x0a" * 20
ALICE = b"\xa1" * 20
BOB = b"\xb0" * 20
P0 = b"\x00" * 32
P1 = b"\x01" * 32
P2 = b"\x02" * 32


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for var in (
        "POAP_LEDGER_DB",
        "POAP_LEDGER_ACCESS_MODE",
        "POAP_LEDGER_MAX_URI_BYTES",
        "POAP_LEDGER_MAX_ADDRESS_BYTES",
        "POAP_LEDGER_IPFS_GATEWAY",
        "POAP_LEDGER_LOG_LEVEL",
        "POAP_LEDGER_LOG_FORMAT",
    ):
        monkeypatch.delenv(var, raising=False)
    reload_config()
    plog.clear_context()
    pkg_logger = logging.getLogger("poap_ledger")
    for h in list(pkg_logger.handlers):
        pkg_logger.removeHandler(h)
    pkg_logger.propagate = True
    pkg_logger.setLevel(logging.NOTSET)
    yield
    reload_config()
    plog.clear_context()


@pytest.fixture(params=["memory", "sqlite"])
def kv(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "memory":
        store = MemoryKV()
    else:
        store = SQLiteKV(tmp_path / "ledger.db")
    yield store
    store.close()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def sink() -> MemoryEventSink:
    return MemoryEventSink()


@pytest.fixture
def make_host(clock: ManualClock, sink: MemoryEventSink) -> Callable[..., LedgerHost]:
    def _make(kv=None, *, access_mode: AccessMode = AccessMode.PERMISSIONLESS, **kwargs) -> LedgerHost:
        return LedgerHost.initialize(
            kv if kv is not None else MemoryKV(),
            OWNER,
            clock=kwargs.pop("clock", clock),
            sink=kwargs.pop("sink", sink),
            access_mode=access_mode,
            config=kwargs.pop("config", load_config()),
            **kwargs,
        )

    return _make


@pytest.fixture
def host(kv, make_host) -> LedgerHost:
    return make_host(kv)


@pytest.fixture(params=[AccessMode.PERMISSIONLESS, AccessMode.OWNER_GATED], ids=["open", "owner"])
def access_mode(request: pytest.FixtureRequest) -> AccessMode:
    return request.param


@pytest.fixture
def caller(access_mode: AccessMode) -> bytes:
    """An address allowed to mutate under the given access mode."""
    return OWNER if access_mode is AccessMode.OWNER_GATED else ALICE
