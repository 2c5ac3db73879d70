"""
Base protocol and types for the persistent record backend.

This module defines the RecordBackend/RecordSession protocols that every
storage implementation must satisfy, the field names of a stored page
version, and the error hierarchy raised on backend failures.

Invariants:
    - (wikiId, ref, version) is unique, enforced by the backend itself
    - insert_if_absent() is atomic: at most one concurrent insert of a key wins
    - A session is released on every exit path of its context manager
    - Records are never updated in place

How to change safely:
    - Protocol changes require updating all implementations
    - Keep field names stable, they are the persisted document keys
    - The createdAt pseudo-field must never be written by callers
"""

from __future__ import annotations

from abc import abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
    TYPE_CHECKING,
)
import logging

if TYPE_CHECKING:
    from ..config import ServerConfig

logger = logging.getLogger(__name__)

COLLECTION_NAME = "pages"

WIKI_ID_KEY = "wikiId"
WIKI_REF_KEY = "ref"
VERSION_KEY = "version"
USER_ID_KEY = "userId"
TEXT_KEY = "text"
# Filled from the backend's own creation stamp, never stored by callers
CREATED_AT_KEY = "createdAt"

RECORD_FIELDS = (WIKI_ID_KEY, WIKI_REF_KEY, VERSION_KEY, USER_ID_KEY, TEXT_KEY)
KEY_FIELDS = (WIKI_ID_KEY, WIKI_REF_KEY, VERSION_KEY)
PROJECTABLE_FIELDS = RECORD_FIELDS + (CREATED_AT_KEY,)


class BackendError(Exception):
    """Base exception for record backend operations."""
    pass


class BackendConnectionError(BackendError):
    """Connection to the record backend failed."""
    pass


class BackendTimeoutError(BackendError):
    """Backend operation timed out."""
    pass


class RecordDecodeError(BackendError):
    """A stored record could not be decoded."""
    pass


Record = Dict[str, Any]
Filter = Mapping[str, Any]


def check_fields(fields: Sequence[str], allowed: Sequence[str] = PROJECTABLE_FIELDS) -> None:
    """Reject field names the backends do not know about.

    Raises:
        ValueError: If a field is not part of the page version record
    """
    unknown = [f for f in fields if f not in allowed]
    if unknown:
        raise ValueError(f"Unknown page version fields: {unknown}")


@runtime_checkable
class RecordSession(Protocol):
    """Protocol for one acquired connection to the record backend.

    A session only lives inside ``async with backend.session()``; it must not
    be kept after the block exits.
    """

    @abstractmethod
    async def insert_if_absent(self, record: Mapping[str, Any]) -> bool:
        """Insert a record unless one with the same key triple exists.

        Args:
            record: Mapping with every field of RECORD_FIELDS

        Returns:
            True if the record was created, False if the key was occupied

        Raises:
            BackendError: For any failure other than the key being occupied
        """
        ...

    @abstractmethod
    async def find_one(
        self,
        filter: Filter,
        projection: Sequence[str],
        max_field: Optional[str] = None,
    ) -> Optional[Record]:
        """Find one record matching all equality filters.

        Args:
            filter: Field/value equality conditions
            projection: Fields to return (may include CREATED_AT_KEY)
            max_field: If given, return the matching record with the
                greatest value of this field

        Returns:
            The projected record, or None if nothing matches

        Raises:
            BackendError: On backend failure
        """
        ...

    @abstractmethod
    async def find_all(self, filter: Filter, projection: Sequence[str]) -> List[Record]:
        """Return every matching record, projected, in natural order.

        Raises:
            BackendError: On backend failure
        """
        ...

    @abstractmethod
    async def delete_all(self, filter: Filter) -> int:
        """Delete every matching record.

        Returns:
            Number of deleted records

        Raises:
            BackendError: On backend failure
        """
        ...


@runtime_checkable
class RecordBackend(Protocol):
    """Protocol for persistent record backends.

    The backend holds only read-only connection parameters. Each call to
    session() acquires a fresh connection that is released when the
    context exits, whatever the outcome.

    Example:
        >>> backend = SqliteRecordBackend(SqliteConfig(data_dir="/tmp/wiki"))
        >>> await backend.initialize()
        >>> async with backend.session() as session:
        ...     created = await session.insert_if_absent(record)
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Make sure the uniqueness constraint on the key triple exists.

        Raises:
            BackendError: If the backend cannot be prepared
        """
        ...

    @abstractmethod
    def session(self) -> AbstractAsyncContextManager[RecordSession]:
        """Acquire a scoped session.

        Raises:
            BackendConnectionError: If the connection cannot be opened
        """
        ...


def create_record_backend(config: "ServerConfig") -> RecordBackend:
    """Factory function to create a record backend from configuration.

    Args:
        config: Server configuration

    Returns:
        Appropriate RecordBackend implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .mongo import MongoRecordBackend
    from .sqlite import SqliteRecordBackend

    if config.storage_backend == StorageBackend.MONGODB:
        return MongoRecordBackend(config.mongo)
    elif config.storage_backend == StorageBackend.SQLITE:
        return SqliteRecordBackend(config.sqlite)
    else:
        raise ValueError(f"Unsupported storage backend: {config.storage_backend}")
