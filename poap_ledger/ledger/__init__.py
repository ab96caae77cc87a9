"""Issuance, publication and access control over `LedgerState`."""
