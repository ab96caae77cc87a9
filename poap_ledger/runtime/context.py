"""
poap_ledger.runtime.context: per-call environment and identity coercion

A `CallContext` is built by the host for every mutating call. It carries only
pure data: the caller's address and the logical timestamp read from the clock
once, before any ledger logic runs.

Design notes
------------
- Addresses are opaque bytes of 1..max_len bytes (default 64).
- Project ids are exactly 32 bytes.
- Hex strings (with or without "0x") are accepted and normalized to bytes.
- Malformed inputs raise `InvalidArgument` before any state is read.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Union

from poap_ledger.errors import InvalidArgument

BytesLike = Union[bytes, bytearray, memoryview, str]

PROJECT_ID_LEN = 32
DEFAULT_MAX_ADDRESS_LEN = 64


def _strip_0x(s: str) -> str:
    return s[2:] if s.startswith(("0x", "0X")) else s


def to_bytes(value: BytesLike, *, name: str = "value") -> bytes:
    """
    Coerce `value` to bytes.
    - str is interpreted as hex (with or without '0x'); odd length is rejected.
    - bytes-like objects are copied to immutable bytes.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        h = _strip_0x(value.strip())
        if len(h) % 2 != 0:
            raise InvalidArgument(f"{name}: hex string must have even length", length=len(h))
        try:
            return bytes.fromhex(h)
        except ValueError as e:
            raise InvalidArgument(f"{name}: invalid hex string", value=value) from e
    raise InvalidArgument(f"{name}: cannot convert {type(value).__name__} to bytes")


def to_hex(b: Union[bytes, bytearray, memoryview]) -> str:
    return "0x" + bytes(b).hex()


def to_address(value: BytesLike, *, max_len: int = DEFAULT_MAX_ADDRESS_LEN, name: str = "address") -> bytes:
    b = to_bytes(value, name=name)
    if not (1 <= len(b) <= max_len):
        raise InvalidArgument(f"{name} must be 1..{max_len} bytes", length=len(b))
    return b


def to_project_id(value: BytesLike) -> bytes:
    b = to_bytes(value, name="project_id")
    if len(b) != PROJECT_ID_LEN:
        raise InvalidArgument(f"project_id must be exactly {PROJECT_ID_LEN} bytes", length=len(b))
    return b


def to_token_id(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgument("token_id must be a non-negative int", value=repr(value))
    return value


@dataclass(frozen=True)
class CallContext:
    """
    Deterministic per-call environment.

    Fields
    ------
    caller:    Address of the account invoking the operation.
    timestamp: Logical clock reading taken once at call entry.
    """

    caller: bytes
    timestamp: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "caller", to_bytes(self.caller, name="caller"))
        ts = self.timestamp
        if isinstance(ts, bool) or not isinstance(ts, int) or ts < 0:
            raise InvalidArgument("timestamp must be a non-negative int", value=repr(ts))

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["caller"] = to_hex(self.caller)
        return d


__all__ = [
    "CallContext",
    "PROJECT_ID_LEN",
    "DEFAULT_MAX_ADDRESS_LEN",
    "to_bytes",
    "to_hex",
    "to_address",
    "to_project_id",
    "to_token_id",
]
