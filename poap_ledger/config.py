"""
poap_ledger.config: access mode, storage location and input caps.

Configuration precedence:
  1) Explicit keyword overrides passed to `load_config(**overrides)`
  2) Environment variables (POAP_LEDGER_*)
  3) Hardcoded safe defaults below

Key env vars:
  - POAP_LEDGER_DB                 (uri)    default: sqlite:///poap-ledger.db
  - POAP_LEDGER_ACCESS_MODE        (str)    default: open   (open | owner)
  - POAP_LEDGER_MAX_URI_BYTES      (int)    default: 2048
  - POAP_LEDGER_MAX_ADDRESS_BYTES  (int)    default: 64
  - POAP_LEDGER_IPFS_GATEWAY       (url)    default: https://gateway.pinata.cloud/ipfs/
  - POAP_LEDGER_LOG_LEVEL          (str)    default: INFO
  - POAP_LEDGER_LOG_FORMAT         (str)    default: auto (json | text)

Out-of-range integers are clamped and an unknown access mode falls back to
`open` with a warning, so a bad environment never prevents the CLI from
starting. Explicit overrides are validated strictly.

Usage:
    from poap_ledger.config import load_config
    CFG = load_config()
    if CFG.access_mode is AccessMode.OWNER_GATED: ...
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Optional

from poap_ledger.logging import get_logger

log = get_logger(__name__)


class AccessMode(str, Enum):
    """Who may call the mutating operations (`mint`, `publish`)."""

    PERMISSIONLESS = "open"
    OWNER_GATED = "owner"

    @classmethod
    def parse(cls, raw: Optional[str], default: "AccessMode" = None) -> "AccessMode":  # type: ignore[assignment]
        if raw is None or not raw.strip():
            return default or cls.PERMISSIONLESS
        v = raw.strip().lower()
        if v in ("open", "permissionless", "public"):
            return cls.PERMISSIONLESS
        if v in ("owner", "owner_gated", "owner-gated", "gated"):
            return cls.OWNER_GATED
        raise ValueError(f"unknown access mode: {raw!r}")


DEFAULT_DB_URI = "sqlite:///poap-ledger.db"
DEFAULT_IPFS_GATEWAY = "https://gateway.pinata.cloud/ipfs/"


# ----------------------------- helpers ---------------------------------------


def _env_int(name: str, default: int, *, min_v: int, max_v: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        v = int(raw, 0)
    except ValueError:
        return default
    if v < min_v:
        return min_v
    if v > max_v:
        return max_v
    return v


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _env_access_mode(name: str) -> AccessMode:
    raw = os.getenv(name)
    try:
        return AccessMode.parse(raw)
    except ValueError:
        log.warning("ignoring invalid %s=%r, using %s", name, raw, AccessMode.PERMISSIONLESS.value)
        return AccessMode.PERMISSIONLESS


# ------------------------------- config --------------------------------------


@dataclass(frozen=True)
class LedgerConfig:
    db_uri: str
    access_mode: AccessMode
    max_uri_bytes: int
    max_address_bytes: int
    ipfs_gateway: str
    log_level: str
    log_format: Optional[str]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "db_uri": self.db_uri,
            "access_mode": self.access_mode.value,
            "max_uri_bytes": self.max_uri_bytes,
            "max_address_bytes": self.max_address_bytes,
            "ipfs_gateway": self.ipfs_gateway,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }


@lru_cache(maxsize=1)
def _load_from_env() -> LedgerConfig:
    fmt = os.getenv("POAP_LEDGER_LOG_FORMAT", "").strip().lower()
    return LedgerConfig(
        db_uri=_env_str("POAP_LEDGER_DB", DEFAULT_DB_URI),
        access_mode=_env_access_mode("POAP_LEDGER_ACCESS_MODE"),
        max_uri_bytes=_env_int("POAP_LEDGER_MAX_URI_BYTES", 2048, min_v=16, max_v=65_536),
        max_address_bytes=_env_int("POAP_LEDGER_MAX_ADDRESS_BYTES", 64, min_v=1, max_v=256),
        ipfs_gateway=_env_str("POAP_LEDGER_IPFS_GATEWAY", DEFAULT_IPFS_GATEWAY),
        log_level=_env_str("POAP_LEDGER_LOG_LEVEL", "INFO").upper(),
        log_format=fmt if fmt in ("json", "text") else None,
    )


def load_config(**overrides: Any) -> LedgerConfig:
    """
    Build a LedgerConfig from environment + safe defaults, then apply overrides.

    The environment snapshot is cached; call `reload_config()` after changing
    variables (tests do this through monkeypatch).
    """
    cfg = _load_from_env()
    if not overrides:
        return cfg
    if "access_mode" in overrides and not isinstance(overrides["access_mode"], AccessMode):
        overrides["access_mode"] = AccessMode.parse(str(overrides["access_mode"]))
    return replace(cfg, **overrides)


def reload_config() -> LedgerConfig:
    _load_from_env.cache_clear()
    return _load_from_env()


__all__ = [
    "AccessMode",
    "LedgerConfig",
    "load_config",
    "reload_config",
    "DEFAULT_DB_URI",
    "DEFAULT_IPFS_GATEWAY",
]
