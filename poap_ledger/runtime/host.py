"""
poap_ledger.runtime.host: the single-writer boundary around the ledger.

`LedgerHost` owns the `LedgerState` and is the only long-lived holder of it.
Every public call:

  1. takes the host lock (one writer at a time, reentrant),
  2. binds a logging trace id and builds a `CallContext` (caller + one clock
     reading),
  3. runs the core inside a journal transaction, which commits as a single
     KV batch or reverts completely on any exception,
  4. hands staged events to the `EventSink` only after the commit. A sink
     that raises is logged and noted in the receipt; the committed call
     still returns its result.

The mutators raise typed `LedgerError`s. `execute(call)` is the value-returning
form: it never raises for ledger failures and reports them in a `Receipt`.

Usage
-----
    host = LedgerHost.initialize(open_kv("memory://"), owner=b"\\x01" * 20)
    tid = host.mint(b"\\x01" * 20, b"\\x00" * 32, alice, "ipfs://a")
    receipt = host.execute(MintCall(caller, project_id, bob, "ipfs://b"))
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from poap_ledger import logging as plog
from poap_ledger.config import AccessMode, LedgerConfig, load_config
from poap_ledger.db.kv import KV
from poap_ledger.errors import LedgerError, ProjectAlreadyMinted, Unauthorized, error_to_receipt_fields
from poap_ledger.ledger.access import AccessPolicy
from poap_ledger.ledger.issuance import IssuanceLedger, TokenAssigner
from poap_ledger.ledger.registry import ProjectRegistry
from poap_ledger.ledger.types import Metadata, TokenId
from poap_ledger.runtime.clock import Clock, SystemClock
from poap_ledger.runtime.context import BytesLike, CallContext, to_address, to_hex
from poap_ledger.runtime.events import EventSink, LedgerEvent, MemoryEventSink
from poap_ledger.state.invariants import verify_invariants
from poap_ledger.state.tables import LedgerState

log = plog.get_logger(__name__)


@dataclass(frozen=True)
class MintCall:
    caller: BytesLike
    project_id: BytesLike
    recipient: BytesLike
    metadata_uri: str

    op = "mint"


@dataclass(frozen=True)
class PublishCall:
    caller: BytesLike
    project_id: BytesLike

    op = "publish"


LedgerCall = Union[MintCall, PublishCall]


@dataclass
class Receipt:
    """
    Outcome of `LedgerHost.execute`.

    status:  "ok" | "rejected" | "error"
    result:  token id for a successful mint, None otherwise
    events:  canonical dicts of the events delivered by this call
    error:   {code, message, data?} when status != "ok"
    delivery_error: set when the call committed but the event sink raised
    """

    op: str
    status: str
    result: Optional[int] = None
    events: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None
    trace_id: Optional[str] = None
    timestamp: Optional[int] = None
    delivery_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"op": self.op, "status": self.status, "result": self.result, "events": list(self.events)}
        if self.error is not None:
            out["error"] = dict(self.error)
        if self.trace_id is not None:
            out["trace_id"] = self.trace_id
        if self.timestamp is not None:
            out["timestamp"] = self.timestamp
        if self.delivery_error is not None:
            out["delivery_error"] = self.delivery_error
        return out


class LedgerHost:
    def __init__(
        self,
        state: LedgerState,
        *,
        clock: Optional[Clock] = None,
        sink: Optional[EventSink] = None,
        access_mode: Optional[AccessMode] = None,
        assigner: Optional[TokenAssigner] = None,
        config: Optional[LedgerConfig] = None,
    ) -> None:
        cfg = config or load_config()
        self._cfg = cfg
        self._state = state
        self._clock: Clock = clock or SystemClock()
        self._sink: EventSink = sink if sink is not None else MemoryEventSink()
        self._lock = threading.RLock()
        policy = AccessPolicy(access_mode or cfg.access_mode)
        self._policy = policy
        self._issuance = IssuanceLedger(
            state,
            policy=policy,
            assigner=assigner,
            max_uri_bytes=cfg.max_uri_bytes,
            max_address_bytes=cfg.max_address_bytes,
        )
        self._registry = ProjectRegistry(state, policy=policy)
        self._last: Tuple[Optional[str], Optional[int], List[LedgerEvent], Optional[str]] = (None, None, [], None)

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def initialize(cls, kv: KV, owner: BytesLike, **kwargs: Any) -> "LedgerHost":
        """
        Initialize `kv` with zeroed counters and `owner` as nominal owner, or
        re-open it unchanged when it already holds a ledger.
        """
        cfg = kwargs.get("config") or load_config()
        owner_b = to_address(owner, max_len=cfg.max_address_bytes, name="owner")
        fresh = not LedgerState.is_initialized(kv)
        state = LedgerState.initialize(kv, owner_b)
        log.info(
            "ledger initialized" if fresh else "ledger reopened",
            extra={"owner": to_hex(state.owner), "total_issued": state.total_issued()},
        )
        return cls(state, **kwargs)

    @classmethod
    def open(cls, kv: KV, **kwargs: Any) -> "LedgerHost":
        """Open an existing ledger; raises NotInitialized otherwise."""
        return cls(LedgerState.open(kv), **kwargs)

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def access_mode(self) -> AccessMode:
        return self._policy.mode

    @property
    def sink(self) -> EventSink:
        return self._sink

    # ------------------------------------------------------------------ #
    # Call plumbing
    # ------------------------------------------------------------------ #

    def _run(self, op: str, caller: BytesLike, fn: Callable[[CallContext], Any], **fields: Any) -> Any:
        with self._lock, plog.trace_scope() as trace_id:
            plog.bind(op=op)
            self._last = (trace_id, None, [], None)
            try:
                ctx = CallContext(
                    caller=to_address(caller, max_len=self._cfg.max_address_bytes, name="caller"),
                    timestamp=self._clock.now(),
                )
                plog.bind(caller=ctx.caller)
                with self._state.journal.transaction() as tx:
                    result = fn(ctx)
            except (ProjectAlreadyMinted, Unauthorized) as e:
                log.warning("%s rejected", op, extra={"code": e.code, **fields})
                raise
            except LedgerError as e:
                log.warning("%s failed", op, extra={"code": e.code, "reason": e.message, **fields})
                raise
            except Exception:
                log.exception("%s failed unexpectedly", op, extra=fields)
                raise
            delivery_error: Optional[str] = None
            if tx.events:
                try:
                    self._sink.deliver(tx.events)
                except Exception as e:
                    # The batch is already durable: the call stands, the sink failure is reported.
                    delivery_error = f"{type(e).__name__}: {e}"
                    log.exception("%s event delivery failed", op, extra={"result": result, **fields})
            self._last = (trace_id, ctx.timestamp, list(tx.events), delivery_error)
            log.info("%s committed", op, extra={"result": result, "events": len(tx.events), **fields})
            return result

    # ------------------------------------------------------------------ #
    # Mutators
    # ------------------------------------------------------------------ #

    def mint(self, caller: BytesLike, project_id: BytesLike, recipient: BytesLike, metadata_uri: str) -> TokenId:
        return self._run(
            "mint",
            caller,
            lambda ctx: self._issuance.mint(ctx, project_id, recipient, metadata_uri),
            project_id=project_id,
            recipient=recipient,
        )

    def publish(self, caller: BytesLike, project_id: BytesLike) -> None:
        self._run("publish", caller, lambda ctx: self._registry.publish(ctx, project_id), project_id=project_id)

    def execute(self, call: LedgerCall) -> Receipt:
        """Run a mutator and report the outcome as a Receipt instead of raising."""
        op = getattr(call, "op", type(call).__name__)
        with self._lock:
            self._last = (None, None, [], None)
            try:
                if isinstance(call, MintCall):
                    result: Optional[int] = int(
                        self.mint(call.caller, call.project_id, call.recipient, call.metadata_uri)
                    )
                elif isinstance(call, PublishCall):
                    self.publish(call.caller, call.project_id)
                    result = None
                else:
                    raise TypeError(f"unsupported call type: {type(call).__name__}")
            except Exception as e:
                fields = error_to_receipt_fields(e)
                return Receipt(op=op, status=fields["status"], error=fields["error"], trace_id=self._last[0])
            trace_id, ts, events, delivery_error = self._last
        return Receipt(
            op=op,
            status="ok",
            result=result,
            events=[ev.to_dict() for ev in events],
            trace_id=trace_id,
            timestamp=ts,
            delivery_error=delivery_error,
        )

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_user_tokens(self, owner: BytesLike) -> List[TokenId]:
        with self._lock:
            return self._issuance.get_user_tokens(owner)

    def get_metadata(self, token_id: int) -> Optional[Metadata]:
        with self._lock:
            return self._issuance.get_metadata(token_id)

    def get_project_token(self, project_id: BytesLike) -> Optional[TokenId]:
        with self._lock:
            return self._issuance.get_project_token(project_id)

    def total_issued(self) -> int:
        with self._lock:
            return self._issuance.total_issued()

    def total_projects_published(self) -> int:
        with self._lock:
            return self._registry.total_projects_published()

    def owner(self) -> bytes:
        return self._state.owner

    def verify(self) -> Dict[str, Any]:
        """Check invariants 1-4 against committed state."""
        with self._lock:
            return verify_invariants(self._state)

    def close(self) -> None:
        with self._lock:
            self._state.journal.kv.close()


__all__ = ["LedgerHost", "MintCall", "PublishCall", "LedgerCall", "Receipt"]
