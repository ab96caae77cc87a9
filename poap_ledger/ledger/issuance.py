"""
poap_ledger.ledger.issuance
===========================

Single-issuance minting: at most one token per 32-byte project id.

mint(ctx, project_id, recipient, metadata_uri)
    1. access check                           → Unauthorized
    2. argument validation                    → InvalidArgument
    3. project already in ProjectIndex        → ProjectAlreadyMinted
    4. token_id = totalIssued; totalIssued += 1 → CounterOverflow at 2**64-1
    5. write Metadata, ProjectIndex, OwnerIndex
    6. optional external TokenAssigner        → ExternalError
    7. stage Minted(...) on the open checkpoint

Every write lands in the caller's journal checkpoint. Any exception from steps
1-7 leaves the checkpoint to be reverted by the caller, so a failed mint makes
no visible change. The next id always comes from the stored counter, never
from a table size, so ids stay dense: 0, 1, 2, ...
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Union, runtime_checkable

from poap_ledger.errors import ExternalError, InvalidArgument, ProjectAlreadyMinted
from poap_ledger.ledger.access import AccessPolicy
from poap_ledger.ledger.types import Metadata, TokenId
from poap_ledger.runtime.context import (
    DEFAULT_MAX_ADDRESS_LEN,
    BytesLike,
    CallContext,
    to_address,
    to_project_id,
    to_token_id,
)
from poap_ledger.runtime.events import Minted
from poap_ledger.state.tables import TOTAL_ISSUED, LedgerState

DEFAULT_MAX_URI_BYTES = 2048


@runtime_checkable
class TokenAssigner(Protocol):
    """
    External token-identity registry the ledger is layered on (for example a
    token contract that tracks id → owner). Raising aborts the mint.
    """

    def assign(self, token_id: int, owner: bytes) -> None: ...


def check_metadata_uri(uri: object, *, max_bytes: int = DEFAULT_MAX_URI_BYTES) -> str:
    if not isinstance(uri, str):
        raise InvalidArgument("metadata_uri must be a string", type=type(uri).__name__)
    if not uri:
        raise InvalidArgument("metadata_uri must be non-empty")
    n = len(uri.encode("utf-8"))
    if n > max_bytes:
        raise InvalidArgument(f"metadata_uri exceeds {max_bytes} bytes", length=n)
    return uri


class IssuanceLedger:
    def __init__(
        self,
        state: LedgerState,
        *,
        policy: Optional[AccessPolicy] = None,
        assigner: Optional[TokenAssigner] = None,
        max_uri_bytes: int = DEFAULT_MAX_URI_BYTES,
        max_address_bytes: int = DEFAULT_MAX_ADDRESS_LEN,
    ) -> None:
        self._state = state
        self._policy = policy or AccessPolicy()
        self._assigner = assigner
        self._max_uri = max_uri_bytes
        self._max_addr = max_address_bytes

    # ------------------------------------------------------------------ #
    # Mutator
    # ------------------------------------------------------------------ #

    def mint(
        self,
        ctx: CallContext,
        project_id: BytesLike,
        recipient: BytesLike,
        metadata_uri: str,
    ) -> TokenId:
        st = self._state
        if not st.journal.in_transaction():
            raise RuntimeError("mint must run inside a journal transaction")

        self._policy.check(st, ctx, op="mint")

        pid = to_project_id(project_id)
        owner = to_address(recipient, max_len=self._max_addr, name="recipient")
        uri = check_metadata_uri(metadata_uri, max_bytes=self._max_uri)

        if st.projects.contains(pid):
            raise ProjectAlreadyMinted(pid, token_id=st.projects.get(pid))

        token_id = st.counters.get(TOTAL_ISSUED)
        st.counters.increment(TOTAL_ISSUED)

        st.metadata.put(
            Metadata(
                token_id=token_id,
                owner=owner,
                project_id=pid,
                metadata_uri=uri,
                timestamp=ctx.timestamp,
            )
        )
        st.projects.put(pid, token_id)
        st.owners.append(owner, token_id)

        if self._assigner is not None:
            try:
                self._assigner.assign(token_id, owner)
            except Exception as e:
                raise ExternalError("token_assigner", e) from e

        st.journal.emit(Minted(token_id=token_id, recipient=owner, project_id=pid, metadata_uri=uri))
        return TokenId(token_id)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_user_tokens(self, owner: BytesLike) -> List[TokenId]:
        addr = to_address(owner, max_len=self._max_addr, name="owner")
        return [TokenId(i) for i in self._state.owners.get(addr)]

    def get_metadata(self, token_id: Union[int, TokenId]) -> Optional[Metadata]:
        return self._state.metadata.get(to_token_id(token_id))

    def get_project_token(self, project_id: BytesLike) -> Optional[TokenId]:
        tid = self._state.projects.get(to_project_id(project_id))
        return TokenId(tid) if tid is not None else None

    def total_issued(self) -> int:
        return self._state.total_issued()

    def owner(self) -> bytes:
        return self._state.owner


__all__ = ["IssuanceLedger", "TokenAssigner", "check_metadata_uri", "DEFAULT_MAX_URI_BYTES"]
