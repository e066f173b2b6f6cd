"""
Datasync Test Suite.

This package contains:
- fakes.py: In-process fake of every remote, served through httpx.MockTransport
- unit/: Unit tests (no network, in-memory local storage)
- integration/: Integration tests (two app contexts, SQLite local storage, CLI)
"""
