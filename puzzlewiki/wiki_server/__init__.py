"""
PuzzleWiki Server - versioned wiki page storage behind a gRPC service.

This package stores immutable, versioned page text identified by a
(wiki id, page reference) pair:
- Every edit appends a new version, nothing is updated in place
- Writers race optimistically on version numbers
- MongoDB (or SQLite) enforces the uniqueness that decides the race

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────┐     ┌─────────────┐
    │   Client    │────▶│    gRPC     │────▶│  PageStore  │────▶│   Record    │
    │   (SDK)     │     │   Server    │     │             │     │   Backend   │
    └─────────────┘     └─────────────┘     └─────────────┘     └─────────────┘

Invariants:
    - (wikiId, ref, version) is unique, enforced by the backend
    - A failed Store never consumes a version number
    - The latest version is always computed, never stored
    - Loading a missing page returns version 0, not an error

How to change safely:
    - Keep conflict detection in the backend insert, never add app-side locks
    - New backends must pass the shared backend test suite
    - Retry policy belongs to clients (see wiki_sdk), not to the server

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
