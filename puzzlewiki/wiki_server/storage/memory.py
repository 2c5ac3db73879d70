"""
In-memory record backend implementation for testing.

This module provides a dict-based backend for:
- Unit tests
- Integration tests
- Local development without a database

Invariants:
    - All data is lost on process exit
    - Same uniqueness guarantee as production backends
    - Safe for concurrent coroutines

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with RecordBackend protocol
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple

from .base import (
    CREATED_AT_KEY,
    KEY_FIELDS,
    RECORD_FIELDS,
    BackendConnectionError,
    Filter,
    Record,
    check_fields,
)

logger = logging.getLogger(__name__)

_Key = Tuple[Any, Any, Any]


class InMemoryRecordSession:
    """Session over the shared in-memory table."""

    def __init__(self, backend: InMemoryRecordBackend) -> None:
        self._backend = backend

    async def insert_if_absent(self, record: Mapping[str, Any]) -> bool:
        check_fields(list(record), RECORD_FIELDS)
        key = tuple(record[f] for f in KEY_FIELDS)

        async with self._backend._lock:
            if key in self._backend._records:
                return False
            stored = dict(record)
            stored[CREATED_AT_KEY] = datetime.now(timezone.utc)
            self._backend._records[key] = stored

        logger.debug("Record inserted in memory backend", extra={"key": key})
        return True

    async def find_one(
        self,
        filter: Filter,
        projection: Sequence[str],
        max_field: Optional[str] = None,
    ) -> Optional[Record]:
        check_fields(projection)
        matches = self._matching(filter)
        if not matches:
            return None
        if max_field is not None:
            check_fields([max_field])
            found = max(matches, key=lambda r: r[max_field])
        else:
            found = matches[0]
        return self._project(found, projection)

    async def find_all(self, filter: Filter, projection: Sequence[str]) -> List[Record]:
        check_fields(projection)
        return [self._project(r, projection) for r in self._matching(filter)]

    async def delete_all(self, filter: Filter) -> int:
        async with self._backend._lock:
            doomed = [
                key for key, record in self._backend._records.items()
                if _matches(record, filter)
            ]
            for key in doomed:
                del self._backend._records[key]
        return len(doomed)

    def _matching(self, filter: Filter) -> List[Record]:
        check_fields(list(filter))
        return [r for r in self._backend._records.values() if _matches(r, filter)]

    @staticmethod
    def _project(record: Record, projection: Sequence[str]) -> Record:
        return {f: record[f] for f in projection if f in record}


def _matches(record: Record, filter: Filter) -> bool:
    return all(record.get(field) == value for field, value in filter.items())


class InMemoryRecordBackend:
    """In-memory implementation of RecordBackend for testing.

    Records are kept in insertion order, which is the natural retrieval
    order reported by find_all().

    Attributes:
        open_sessions: Number of sessions currently acquired
        sessions_opened: Total number of sessions ever acquired

    Example:
        >>> backend = InMemoryRecordBackend()
        >>> await backend.initialize()
        >>> async with backend.session() as session:
        ...     await session.insert_if_absent(record)
    """

    def __init__(self) -> None:
        self._records: Dict[_Key, Record] = {}
        self._lock = asyncio.Lock()
        self._available = True
        self.open_sessions = 0
        self.sessions_opened = 0

    async def initialize(self) -> None:
        """Nothing to create for the in-memory table."""
        logger.debug("InMemoryRecordBackend initialized")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[InMemoryRecordSession]:
        if not self._available:
            raise BackendConnectionError("In-memory backend is unavailable")

        self.open_sessions += 1
        self.sessions_opened += 1
        try:
            yield InMemoryRecordSession(self)
        finally:
            self.open_sessions -= 1

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def set_available(self, available: bool) -> None:
        """Simulate the backend going down (or coming back)."""
        self._available = available

    def put_raw(self, record: Mapping[str, Any]) -> None:
        """Store a record as-is, bypassing validation (for decode tests)."""
        key = tuple(record.get(f) for f in KEY_FIELDS)
        self._records[key] = dict(record)

    def clear(self) -> None:
        """Remove all records."""
        self._records.clear()

    @property
    def record_count(self) -> int:
        return len(self._records)
