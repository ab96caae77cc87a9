"""Value types stored and returned by the ledger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, NewType

TokenId = NewType("TokenId", int)


@dataclass(frozen=True)
class Metadata:
    """
    Immutable record written once per successful mint.

    Fields
    ------
    token_id:     0-based issuance index.
    owner:        Recipient address at mint time (raw bytes).
    project_id:   32-byte project identifier.
    metadata_uri: Off-ledger pointer to the attestation document.
    timestamp:    Logical clock reading at mint time.
    """

    token_id: int
    owner: bytes
    project_id: bytes
    metadata_uri: str
    timestamp: int

    def to_record(self) -> Dict[str, Any]:
        """Storage form (CBOR-friendly; bytes stay bytes)."""
        return {
            "token_id": self.token_id,
            "owner": self.owner,
            "project_id": self.project_id,
            "metadata_uri": self.metadata_uri,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_record(cls, rec: Mapping[str, Any]) -> "Metadata":
        return cls(
            token_id=int(rec["token_id"]),
            owner=bytes(rec["owner"]),
            project_id=bytes(rec["project_id"]),
            metadata_uri=str(rec["metadata_uri"]),
            timestamp=int(rec["timestamp"]),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "token_id": self.token_id,
            "owner": "0x" + self.owner.hex(),
            "project_id": "0x" + self.project_id.hex(),
            "metadata_uri": self.metadata_uri,
            "timestamp": self.timestamp,
        }


__all__ = ["TokenId", "Metadata"]
