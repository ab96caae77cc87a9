"""
poap_ledger.encoding

Canonical CBOR helpers for persisted records (metadata, owner lists).

Canonical mode (RFC 8949 §4.2.1) fixes map key ordering and minimal integer
widths, so the same record always produces the same bytes regardless of how
the dict was built. Dataclasses are converted to dicts before encoding.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any, List

import cbor2

from poap_ledger.errors import InvariantViolation


class CBORError(InvariantViolation):
    """Stored bytes could not be decoded, or a record has the wrong shape."""

    def __init__(self, message: str, **data: Any) -> None:
        super().__init__(message, code="LEDGER/CORRUPT_RECORD", **data)


def dumps(obj: Any) -> bytes:
    if is_dataclass(obj) and not isinstance(obj, type):
        obj = asdict(obj)
    return cbor2.dumps(obj, canonical=True)


def loads(data: bytes) -> Any:
    try:
        return cbor2.loads(data)
    except cbor2.CBORDecodeError as e:
        raise CBORError(f"cannot decode CBOR: {e}", size=len(data)) from e


def dumps_id_list(ids: List[int]) -> bytes:
    return dumps([int(i) for i in ids])


def loads_id_list(data: bytes) -> List[int]:
    obj = loads(data)
    if not isinstance(obj, list) or not all(isinstance(i, int) and i >= 0 for i in obj):
        raise CBORError("owner index entry is not a list of token ids")
    return obj


__all__ = ["CBORError", "dumps", "loads", "dumps_id_list", "loads_id_list"]
