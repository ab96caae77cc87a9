"""
poap_ledger.errors
------------------

Typed failures for the issuance ledger.

Hierarchy
---------
LedgerError (base)
 ├─ ProjectAlreadyMinted : mint precondition failed (project already has a token)
 ├─ Unauthorized         : owner-gated mode and the caller is not the owner
 ├─ ExternalError        : an external collaborator (token assigner) failed
 ├─ InvalidArgument      : malformed project id / address / URI / token id
 ├─ NotInitialized       : the backing store was never initialized
 └─ InvariantViolation   : an index or counter invariant does not hold
     └─ CounterOverflow  : a u64 counter would wrap

Every error carries a stable machine `code`, a human `message` and optional
JSON-safe `data`. The core raises; the host boundary converts errors into
receipt values via `error_to_receipt_fields`.

`ProjectAlreadyMinted` and `Unauthorized` are *semantic* rejections and are
fully recoverable: no state has been touched when they are raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


def _coerce_json(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return "0x" + bytes(v).hex()
    if isinstance(v, dict):
        return {str(k): _coerce_json(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_coerce_json(x) for x in v]
    return str(v)


@dataclass(eq=False)
class LedgerError(Exception):
    """
    Root error for the ledger.

    Attributes:
        message: Human-readable explanation.
        code:    Stable machine code string (e.g. 'LEDGER/UNAUTHORIZED').
        data:    Optional structured details (JSON-serializable after coercion).
        cause:   Wrapped original exception, if any.
    """

    message: str = "ledger error"
    code: str = "LEDGER/ERROR"
    data: Dict[str, Any] = field(default_factory=dict)
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        super().__init__(self.message)
        self.data = {k: _coerce_json(v) for k, v in (self.data or {}).items()}

    def __str__(self) -> str:
        if self.data:
            preview = ", ".join(f"{k}={v}" for k, v in self.data.items())
            return f"{self.code}: {self.message} [{preview}]"
        return f"{self.code}: {self.message}"

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict for receipts/logs."""
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data:
            out["data"] = dict(self.data)
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out


class ProjectAlreadyMinted(LedgerError):
    """A token has already been issued for this project id."""

    def __init__(self, project_id: bytes, *, token_id: Optional[int] = None) -> None:
        data: Dict[str, Any] = {"project_id": project_id}
        if token_id is not None:
            data["token_id"] = token_id
        super().__init__(
            message="project already minted",
            code="LEDGER/PROJECT_ALREADY_MINTED",
            data=data,
        )


class Unauthorized(LedgerError):
    def __init__(self, caller: bytes, *, op: str) -> None:
        super().__init__(
            message=f"caller is not allowed to {op}",
            code="LEDGER/UNAUTHORIZED",
            data={"caller": caller, "op": op},
        )


class ExternalError(LedgerError):
    """
    Failure reported by an external collaborator (e.g. the token assigner the
    ledger is layered on). The original exception is preserved as `cause` and
    its text is forwarded verbatim in `data["reason"]`.
    """

    def __init__(self, source: str, cause: BaseException) -> None:
        super().__init__(
            message=f"{source} failed",
            code="LEDGER/EXTERNAL",
            data={"source": source, "reason": str(cause)},
            cause=cause,
        )


class InvalidArgument(LedgerError, ValueError):
    def __init__(self, message: str, **data: Any) -> None:
        super().__init__(message=message, code="LEDGER/INVALID_ARGUMENT", data=data)


class NotInitialized(LedgerError):
    def __init__(self, message: str = "ledger store is not initialized", **data: Any) -> None:
        super().__init__(message=message, code="LEDGER/NOT_INITIALIZED", data=data)


class InvariantViolation(LedgerError):
    """A cross-index invariant does not hold. Never recoverable by retrying."""

    def __init__(self, message: str, *, code: str = "LEDGER/INVARIANT", **data: Any) -> None:
        super().__init__(message=message, code=code, data=data)


class CounterOverflow(InvariantViolation):
    def __init__(self, counter: str, value: int) -> None:
        super().__init__(
            f"counter {counter} would overflow",
            code="LEDGER/COUNTER_OVERFLOW",
            counter=counter,
            value=value,
        )


# -------- helper utilities ---------------------------------------------------


def error_to_receipt_fields(err: BaseException) -> Dict[str, Any]:
    """
    Map an exception to canonical receipt fields.

    Returns:
        {
          "status": "rejected" | "error",
          "error":  {code, message, data?}
        }

    `rejected` marks recoverable semantic refusals (already minted,
    unauthorized, bad input); anything else is an `error`.
    """
    if isinstance(err, (ProjectAlreadyMinted, Unauthorized, InvalidArgument)):
        status = "rejected"
    else:
        status = "error"
    if isinstance(err, LedgerError):
        payload = err.to_dict()
    else:
        payload = {"code": "LEDGER/INTERNAL", "message": str(err) or type(err).__name__}
    return {"status": status, "error": payload}


__all__ = [
    "LedgerError",
    "ProjectAlreadyMinted",
    "Unauthorized",
    "ExternalError",
    "InvalidArgument",
    "NotInitialized",
    "InvariantViolation",
    "CounterOverflow",
    "error_to_receipt_fields",
]
