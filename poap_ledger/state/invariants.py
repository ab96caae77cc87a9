"""
Cross-table consistency checks.

`verify_invariants(state)` raises `InvariantViolation` on the first broken
rule and returns a small summary dict otherwise:

1. totalIssued equals the number of MetadataStore entries.
2. Every ProjectIndex entry points at a token carrying that project, and every
   token's project maps back to it.
3. Every id listed for an owner exists and is owned by that owner.
4. Issued ids are exactly {0, ..., totalIssued-1}.
"""

from __future__ import annotations

from typing import Any, Dict

from poap_ledger.errors import InvariantViolation
from poap_ledger.state.tables import LedgerState


def verify_invariants(state: LedgerState) -> Dict[str, Any]:
    total = state.total_issued()
    tokens = dict(state.metadata.items())

    if len(tokens) != total:
        raise InvariantViolation("totalIssued does not match stored token count", total_issued=total, stored=len(tokens))

    if set(tokens) != set(range(total)):
        missing = sorted(set(range(total)) - set(tokens))[:8]
        extra = sorted(set(tokens) - set(range(total)))[:8]
        raise InvariantViolation("issued ids are not dense", missing=missing, unexpected=extra)

    for tid, md in tokens.items():
        if md.token_id != tid:
            raise InvariantViolation("record token_id disagrees with its key", key=tid, token_id=md.token_id)

    projects = dict(state.projects.items())
    for pid, tid in projects.items():
        md = tokens.get(tid)
        if md is None or md.project_id != pid:
            raise InvariantViolation("project index points at wrong token", project_id=pid, token_id=tid)
    for tid, md in tokens.items():
        if projects.get(md.project_id) != tid:
            raise InvariantViolation("token project missing from project index", project_id=md.project_id, token_id=tid)

    listed = 0
    for owner, ids in state.owners.items():
        for tid in ids:
            md = tokens.get(tid)
            if md is None or md.owner != owner:
                raise InvariantViolation("owner index lists a token the owner does not hold", owner=owner, token_id=tid)
        listed += len(ids)

    return {
        "total_issued": total,
        "projects": len(projects),
        "owner_entries": listed,
        "total_projects_published": state.total_projects_published(),
    }


__all__ = ["verify_invariants"]
