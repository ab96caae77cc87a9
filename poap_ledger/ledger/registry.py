"""
Project publication counter.

`publish` is deliberately decoupled from minting: it performs no uniqueness
check, stores nothing per project, and every call bumps
`totalProjectsPublished` by one. Publishing the same id twice counts twice.
"""

from __future__ import annotations

from typing import Optional

from poap_ledger.ledger.access import AccessPolicy
from poap_ledger.runtime.context import BytesLike, CallContext, to_project_id
from poap_ledger.runtime.events import Published
from poap_ledger.state.tables import TOTAL_PROJECTS_PUBLISHED, LedgerState


class ProjectRegistry:
    def __init__(self, state: LedgerState, *, policy: Optional[AccessPolicy] = None) -> None:
        self._state = state
        self._policy = policy or AccessPolicy()

    def publish(self, ctx: CallContext, project_id: BytesLike) -> None:
        st = self._state
        if not st.journal.in_transaction():
            raise RuntimeError("publish must run inside a journal transaction")
        self._policy.check(st, ctx, op="publish")
        pid = to_project_id(project_id)
        st.counters.increment(TOTAL_PROJECTS_PUBLISHED)
        st.journal.emit(Published(caller=ctx.caller, project_id=pid))

    def total_projects_published(self) -> int:
        return self._state.total_projects_published()


__all__ = ["ProjectRegistry"]
