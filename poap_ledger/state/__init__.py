"""Journaled tables and their consistency checks."""
