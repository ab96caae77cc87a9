"""
poap_ledger: per-project, single-issuance attestation token ledger.

Public entrypoints (imported lazily so `import poap_ledger` stays cheap and
free of import cycles):

- LedgerHost, MintCall, PublishCall, Receipt   (poap_ledger.runtime.host)
- open_kv, MemoryKV, SQLiteKV                  (poap_ledger.db)
- ManualClock, SystemClock                     (poap_ledger.runtime.clock)
- MemoryEventSink, LoggingEventSink, Minted, Published
                                               (poap_ledger.runtime.events)
- AccessMode, load_config                      (poap_ledger.config)
- Metadata                                     (poap_ledger.ledger.types)
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

from .version import __version__

_EXPORTS = {
    "LedgerHost": "poap_ledger.runtime.host",
    "MintCall": "poap_ledger.runtime.host",
    "PublishCall": "poap_ledger.runtime.host",
    "Receipt": "poap_ledger.runtime.host",
    "open_kv": "poap_ledger.db",
    "MemoryKV": "poap_ledger.db",
    "SQLiteKV": "poap_ledger.db",
    "ManualClock": "poap_ledger.runtime.clock",
    "SystemClock": "poap_ledger.runtime.clock",
    "MemoryEventSink": "poap_ledger.runtime.events",
    "LoggingEventSink": "poap_ledger.runtime.events",
    "Minted": "poap_ledger.runtime.events",
    "Published": "poap_ledger.runtime.events",
    "AccessMode": "poap_ledger.config",
    "load_config": "poap_ledger.config",
    "Metadata": "poap_ledger.ledger.types",
}


def __getattr__(name: str) -> Any:
    mod = _EXPORTS.get(name)
    if mod is None:
        raise AttributeError(f"module 'poap_ledger' has no attribute {name!r}")
    return getattr(import_module(mod), name)


__all__ = ["__version__", *_EXPORTS]
