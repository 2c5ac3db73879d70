"""
Persistent record backend abstraction for the wiki server.

This module provides a pluggable backend interface supporting:
- MongoDB (recommended for production)
- SQLite (single-node deployments)
- In-memory (for testing)

The backend owns the uniqueness of (wikiId, ref, version); the page store
never checks it itself.

Invariants:
    - insert_if_absent() is the only write that creates records
    - Sessions are acquired per operation and always released
    - Backend failures surface as BackendError subclasses

How to change safely:
    - New backends must implement the RecordBackend protocol
    - Verify concurrent insert races against the real database
"""

from .base import (
    COLLECTION_NAME,
    CREATED_AT_KEY,
    TEXT_KEY,
    USER_ID_KEY,
    VERSION_KEY,
    WIKI_ID_KEY,
    WIKI_REF_KEY,
    BackendConnectionError,
    BackendError,
    BackendTimeoutError,
    RecordBackend,
    RecordDecodeError,
    RecordSession,
    create_record_backend,
)
from .memory import InMemoryRecordBackend
from .mongo import MongoRecordBackend
from .sqlite import SqliteRecordBackend

__all__ = [
    # Protocol and types
    "RecordBackend",
    "RecordSession",
    "BackendError",
    "BackendConnectionError",
    "BackendTimeoutError",
    "RecordDecodeError",
    # Field names
    "COLLECTION_NAME",
    "WIKI_ID_KEY",
    "WIKI_REF_KEY",
    "VERSION_KEY",
    "USER_ID_KEY",
    "TEXT_KEY",
    "CREATED_AT_KEY",
    # Factory
    "create_record_backend",
    # Implementations
    "InMemoryRecordBackend",
    "MongoRecordBackend",
    "SqliteRecordBackend",
]
