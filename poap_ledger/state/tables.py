"""
poap_ledger.state.tables: typed views over the journaled key-value store.

Layout
------
    t: | be_u64(token_id)   -> CBOR Metadata record          (MetadataStore)
    p: | project_id         -> be_u64(token_id)              (ProjectIndex)
    o: | owner              -> CBOR [token_id, ...]          (OwnerIndex)
    c: | counter name       -> be_u64(value)                 (Counters)
    m: | "schema"           -> schema version byte
    m: | "owner"            -> nominal owner address

Reads return `None` / `[]` / 0 for absent entries; preconditions use
`contains`. All writes go through the `Journal`, so nothing reaches the store
until the surrounding checkpoint commits.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from poap_ledger import encoding
from poap_ledger.db.kv import COUNTERS, KV, META, OWNERS, PROJECTS, TOKENS, U64_MAX, be_u64, from_be_u64
from poap_ledger.encoding import CBORError
from poap_ledger.errors import CounterOverflow, NotInitialized
from poap_ledger.ledger.types import Metadata
from poap_ledger.state.journal import Journal

SCHEMA_VERSION = 1

TOTAL_ISSUED = "totalIssued"
TOTAL_PROJECTS_PUBLISHED = "totalProjectsPublished"

_K_SCHEMA = META.key("schema")
_K_OWNER = META.key("owner")


class MetadataStore:
    """token id → immutable Metadata record."""

    def __init__(self, journal: Journal) -> None:
        self._j = journal

    @staticmethod
    def _key(token_id: int) -> bytes:
        return TOKENS.key(be_u64(token_id))

    def get(self, token_id: int) -> Optional[Metadata]:
        if not (0 <= token_id <= U64_MAX):
            return None
        raw = self._j.get(self._key(token_id))
        if raw is None:
            return None
        rec = encoding.loads(raw)
        if not isinstance(rec, dict):
            raise CBORError("metadata record is not a map", token_id=token_id)
        try:
            return Metadata.from_record(rec)
        except (KeyError, TypeError, ValueError) as e:
            raise CBORError(f"malformed metadata record: {e}", token_id=token_id) from e

    def put(self, record: Metadata) -> None:
        self._j.put(self._key(record.token_id), encoding.dumps(record.to_record()))

    def items(self) -> Iterator[Tuple[int, Metadata]]:
        for k, _ in self._j.iter_prefix(TOKENS.raw):
            tid = from_be_u64(TOKENS.parts(k)[0])
            md = self.get(tid)
            if md is not None:
                yield tid, md

    def count(self) -> int:
        return sum(1 for _ in self._j.iter_prefix(TOKENS.raw))


class ProjectIndex:
    """project id → token id. The only authority on whether a project was minted."""

    def __init__(self, journal: Journal) -> None:
        self._j = journal

    def contains(self, project_id: bytes) -> bool:
        return self._j.has(PROJECTS.key(project_id))

    def get(self, project_id: bytes) -> Optional[int]:
        raw = self._j.get(PROJECTS.key(project_id))
        return from_be_u64(raw) if raw is not None else None

    def put(self, project_id: bytes, token_id: int) -> None:
        self._j.put(PROJECTS.key(project_id), be_u64(token_id))

    def items(self) -> Iterator[Tuple[bytes, int]]:
        for k, v in self._j.iter_prefix(PROJECTS.raw):
            yield PROJECTS.parts(k)[0], from_be_u64(v)


class OwnerIndex:
    """owner → token ids in mint order. Append-only, duplicates are never collapsed."""

    def __init__(self, journal: Journal) -> None:
        self._j = journal

    def get(self, owner: bytes) -> List[int]:
        raw = self._j.get(OWNERS.key(owner))
        return encoding.loads_id_list(raw) if raw is not None else []

    def append(self, owner: bytes, token_id: int) -> None:
        ids = self.get(owner)
        ids.append(token_id)
        self._j.put(OWNERS.key(owner), encoding.dumps_id_list(ids))

    def items(self) -> Iterator[Tuple[bytes, List[int]]]:
        for k, v in self._j.iter_prefix(OWNERS.raw):
            yield OWNERS.parts(k)[0], encoding.loads_id_list(v)


class Counters:
    """Named unsigned 64-bit counters; absent reads as 0."""

    def __init__(self, journal: Journal) -> None:
        self._j = journal

    def get(self, name: str) -> int:
        raw = self._j.get(COUNTERS.key(name))
        return from_be_u64(raw) if raw is not None else 0

    def set(self, name: str, value: int) -> None:
        self._j.put(COUNTERS.key(name), be_u64(value))

    def increment(self, name: str) -> int:
        """Add one and return the new value. Raises CounterOverflow at 2**64-1."""
        cur = self.get(name)
        if cur >= U64_MAX:
            raise CounterOverflow(name, cur)
        self.set(name, cur + 1)
        return cur + 1


class LedgerState:
    """
    The one owned state value: journal + tables + nominal owner.

    Built with `initialize` (fresh or existing store) or `open` (existing only).
    """

    def __init__(self, journal: Journal, owner: bytes) -> None:
        self.journal = journal
        self.owner = owner
        self.metadata = MetadataStore(journal)
        self.projects = ProjectIndex(journal)
        self.owners = OwnerIndex(journal)
        self.counters = Counters(journal)

    @classmethod
    def initialize(cls, kv: KV, owner: bytes) -> "LedgerState":
        """
        Set both counters to 0 and record `owner`, unless the store is already
        initialized, in which case its existing state (and owner) are kept.
        """
        if kv.has(_K_SCHEMA):
            return cls.open(kv)
        journal = Journal(kv)
        with journal.transaction():
            journal.put(_K_SCHEMA, bytes([SCHEMA_VERSION]))
            journal.put(_K_OWNER, bytes(owner))
            counters = Counters(journal)
            counters.set(TOTAL_ISSUED, 0)
            counters.set(TOTAL_PROJECTS_PUBLISHED, 0)
        return cls(journal, bytes(owner))

    @classmethod
    def open(cls, kv: KV) -> "LedgerState":
        raw = kv.get(_K_SCHEMA)
        if raw is None:
            raise NotInitialized()
        if raw != bytes([SCHEMA_VERSION]):
            raise NotInitialized("unsupported store schema", schema=raw)
        owner = kv.get(_K_OWNER)
        if owner is None:
            raise NotInitialized("store has no recorded owner")
        return cls(Journal(kv), owner)

    @staticmethod
    def is_initialized(kv: KV) -> bool:
        return kv.has(_K_SCHEMA)

    def total_issued(self) -> int:
        return self.counters.get(TOTAL_ISSUED)

    def total_projects_published(self) -> int:
        return self.counters.get(TOTAL_PROJECTS_PUBLISHED)


__all__ = [
    "SCHEMA_VERSION",
    "TOTAL_ISSUED",
    "TOTAL_PROJECTS_PUBLISHED",
    "MetadataStore",
    "ProjectIndex",
    "OwnerIndex",
    "Counters",
    "LedgerState",
]
