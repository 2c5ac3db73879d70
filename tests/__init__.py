"""
PuzzleWiki Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (gRPC over loopback, in-memory backend)
- e2e/: End-to-end tests (real MongoDB)
"""
