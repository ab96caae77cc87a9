"""
Ledger notifications and the sinks that receive them.

Two event kinds exist:

    Minted(token_id, recipient, project_id, metadata_uri)
    Published(caller, project_id)

Events are staged on the open journal checkpoint while a call runs and reach
an `EventSink` only after the call's writes are durable. A sink therefore never
observes an event for state that was rolled back.

`to_dict()` gives the canonical receipt form:

    {"name": "Minted", "args": [{"k": ..., "t": "b"|"i"|"s", "v": ...}, ...]}

with bytes rendered as 0x-hex.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, fields
from typing import Any, Dict, Iterable, List, Protocol, Tuple, Union, runtime_checkable

from poap_ledger.logging import get_logger


def _encode_arg(k: str, v: Any) -> Dict[str, Any]:
    if isinstance(v, (bytes, bytearray)):
        return {"k": k, "t": "b", "v": "0x" + bytes(v).hex()}
    if isinstance(v, int) and not isinstance(v, bool):
        return {"k": k, "t": "i", "v": int(v)}
    if isinstance(v, str):
        return {"k": k, "t": "s", "v": v}
    raise TypeError(f"unsupported event arg type: {type(v).__name__}")


class _EventBase:
    name = "Event"

    def args(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}  # type: ignore[arg-type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "args": [_encode_arg(k, v) for k, v in self.args().items()],
        }


@dataclass(frozen=True)
class Minted(_EventBase):
    token_id: int
    recipient: bytes
    project_id: bytes
    metadata_uri: str

    name = "Minted"


@dataclass(frozen=True)
class Published(_EventBase):
    caller: bytes
    project_id: bytes

    name = "Published"


LedgerEvent = Union[Minted, Published]


@runtime_checkable
class EventSink(Protocol):
    def deliver(self, events: Iterable[LedgerEvent]) -> None: ...


class MemoryEventSink:
    """Append-only in-process sink. Tests read `events` back."""

    def __init__(self) -> None:
        self._events: List[LedgerEvent] = []
        self._lock = threading.Lock()

    def deliver(self, events: Iterable[LedgerEvent]) -> None:
        with self._lock:
            self._events.extend(events)

    @property
    def events(self) -> Tuple[LedgerEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def of_type(self, kind: type) -> List[LedgerEvent]:
        return [e for e in self.events if isinstance(e, kind)]

    def __len__(self) -> int:
        return len(self._events)


class LoggingEventSink:
    """Writes each delivered event as one structured log line."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._log = logger or get_logger("poap_ledger.events")
        self._level = level

    def deliver(self, events: Iterable[LedgerEvent]) -> None:
        for ev in events:
            self._log.log(self._level, ev.name, extra={"event": ev.to_dict()["args"]})


__all__ = [
    "Minted",
    "Published",
    "LedgerEvent",
    "EventSink",
    "MemoryEventSink",
    "LoggingEventSink",
]
