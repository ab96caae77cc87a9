"""
poap_ledger.ledger.access
=========================

Who may call the mutating operations.

- `AccessMode.PERMISSIONLESS` (default): anyone may mint and publish.
- `AccessMode.OWNER_GATED`: only the nominal owner recorded at initialization.

The check runs before any input validation or state read, so a refused call
never touches the store.

Typical usage
-------------
    policy = AccessPolicy(AccessMode.OWNER_GATED)
    policy.check(state, ctx, op="mint")     # raises Unauthorized
"""

from __future__ import annotations

from dataclasses import dataclass

from poap_ledger.config import AccessMode
from poap_ledger.errors import Unauthorized
from poap_ledger.runtime.context import CallContext
from poap_ledger.state.tables import LedgerState


def require_owner(state: LedgerState, caller: bytes, *, op: str) -> None:
    """Raise Unauthorized unless `caller` equals the nominal owner."""
    if not state.owner or caller != state.owner:
        raise Unauthorized(caller, op=op)


@dataclass(frozen=True)
class AccessPolicy:
    mode: AccessMode = AccessMode.PERMISSIONLESS

    def check(self, state: LedgerState, ctx: CallContext, *, op: str) -> None:
        if self.mode is AccessMode.OWNER_GATED:
            require_owner(state, ctx.caller, op=op)


__all__ = ["AccessMode", "AccessPolicy", "require_owner"]
