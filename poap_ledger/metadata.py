"""
POAP metadata documents and project-id derivation.

The ledger stores only a URI per token. These helpers produce what that URI
points at and the 32-byte project ids the ledger is keyed by:

- `project_hash(key)`        BLAKE2b-256 of the UTF-8 project key
- `padded_project_id(key)`   legacy mapping: key right-padded with "0" to 32
                             characters, UTF-8 encoded, truncated to 32 bytes
- `build_poap_metadata(...)` standard attestation document
- `to_data_uri` / `from_data_uri`
                             inline `data:application/json;base64,...` form
                             used when no pinning service is available
- `ipfs_to_http(uri)`        rewrite `ipfs://CID` to a gateway URL
"""

from __future__ import annotations

import base64
import binascii
import datetime as _dt
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from poap_ledger.config import DEFAULT_IPFS_GATEWAY
from poap_ledger.errors import InvalidArgument
from poap_ledger.runtime.context import PROJECT_ID_LEN

PLATFORM = "GitArch"
NETWORK = "Shibuya Testnet"
DEFAULT_DESCRIPTION = "POAP NFT generated by GitArch for an architecture project"

DATA_URI_PREFIX = "data:application/json;base64,"
IPFS_SCHEME = "ipfs://"


def project_hash(key: str) -> bytes:
    return hashlib.blake2b(key.encode("utf-8"), digest_size=PROJECT_ID_LEN).digest()


def padded_project_id(key: str) -> bytes:
    if not key:
        raise InvalidArgument("project key must be non-empty")
    return key.ljust(PROJECT_ID_LEN, "0").encode("utf-8")[:PROJECT_ID_LEN]


@dataclass(frozen=True)
class Attribute:
    trait_type: str
    value: str


@dataclass(frozen=True)
class PoapMetadata:
    name: str
    description: str
    image: str
    attributes: List[Attribute] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "attributes": [{"trait_type": a.trait_type, "value": a.value} for a in self.attributes],
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "PoapMetadata":
        try:
            return cls(
                name=str(d["name"]),
                description=str(d.get("description", "")),
                image=str(d.get("image", "")),
                attributes=[Attribute(str(a["trait_type"]), str(a["value"])) for a in d.get("attributes", [])],
            )
        except (KeyError, TypeError) as e:
            raise InvalidArgument(f"malformed POAP metadata: {e}") from e

    def attribute(self, trait_type: str) -> Optional[str]:
        for a in self.attributes:
            if a.trait_type == trait_type:
                return a.value
        return None


def _iso_ms(ts: Union[_dt.datetime, int, None]) -> str:
    if ts is None:
        when = _dt.datetime.now(_dt.timezone.utc)
    elif isinstance(ts, _dt.datetime):
        when = ts if ts.tzinfo is not None else ts.replace(tzinfo=_dt.timezone.utc)
    else:
        when = _dt.datetime.fromtimestamp(int(ts), tz=_dt.timezone.utc)
    return when.astimezone(_dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_poap_metadata(
    title: str,
    description: str,
    image: str,
    category: str,
    *,
    university: Optional[str] = None,
    project_id: Optional[str] = None,
    minted_at: Union[_dt.datetime, int, None] = None,
) -> PoapMetadata:
    """
    Standard attestation document for a project.

    `minted_at` accepts a datetime or unix seconds; defaults to now (UTC).
    The "Project ID" attribute is added only when `project_id` is given.
    """
    attrs = [
        Attribute("Category", category),
        Attribute("University", university or "N/A"),
        Attribute("Platform", PLATFORM),
        Attribute("Network", NETWORK),
    ]
    if project_id is not None:
        attrs.append(Attribute("Project ID", project_id))
    attrs.append(Attribute("Minted At", _iso_ms(minted_at)))
    return PoapMetadata(
        name=f"{PLATFORM} POAP - {title}",
        description=description or DEFAULT_DESCRIPTION,
        image=image,
        attributes=attrs,
    )


def to_data_uri(doc: Union[PoapMetadata, Mapping[str, Any]]) -> str:
    payload = doc.to_dict() if isinstance(doc, PoapMetadata) else dict(doc)
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return DATA_URI_PREFIX + base64.b64encode(raw).decode("ascii")


def from_data_uri(uri: str) -> PoapMetadata:
    if not uri.startswith(DATA_URI_PREFIX):
        raise InvalidArgument("not a base64 JSON data URI", uri=uri[:64])
    try:
        raw = base64.b64decode(uri[len(DATA_URI_PREFIX) :], validate=True)
        obj = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise InvalidArgument(f"cannot decode data URI: {e}") from e
    if not isinstance(obj, dict):
        raise InvalidArgument("data URI does not hold a JSON object")
    return PoapMetadata.from_dict(obj)


def ipfs_to_http(uri: str, gateway: str = DEFAULT_IPFS_GATEWAY) -> str:
    """Rewrite ipfs://CID[/path] onto `gateway`; other URIs pass through unchanged."""
    if not uri.startswith(IPFS_SCHEME):
        return uri
    base = gateway if gateway.endswith("/") else gateway + "/"
    return base + uri[len(IPFS_SCHEME) :]


__all__ = [
    "Attribute",
    "PoapMetadata",
    "project_hash",
    "padded_project_id",
    "build_poap_metadata",
    "to_data_uri",
    "from_data_uri",
    "ipfs_to_http",
]
