"""
Version helpers for the POAP ledger.

`POAP_LEDGER_VERSION` in the environment overrides the packaged default, which
keeps release tooling and local builds in agreement without importing git.
"""

from __future__ import annotations

import os

DEFAULT_VERSION = "0.1.0"


def _detect() -> str:
    raw = os.environ.get("POAP_LEDGER_VERSION", "").strip()
    return raw.lstrip("v") if raw else DEFAULT_VERSION


__version__: str = _detect()


__all__ = ["__version__", "DEFAULT_VERSION"]
