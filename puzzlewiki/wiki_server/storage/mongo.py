"""
MongoDB record backend implementation.

This module provides the production backend for page versions. It relies on
MongoDB for the two guarantees the versioning logic needs:
- A unique compound index on (wikiId, ref, version) rejects duplicate inserts
- find_one with a descending sort on version locates the latest version

Invariants:
    - A client is created per session and closed when the session exits
    - The creation timestamp is the generation time of the ObjectId _id
    - Documents are inserted once and never updated

How to change safely:
    - Never drop or rebuild the unique index on a live collection
    - Test with an actual MongoDB server before deploying
    - Keep DuplicateKeyError mapped to a conflict, never to an error
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Mapping, Optional, Sequence, TypeVar

from bson import ObjectId
from bson.errors import BSONError
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    NetworkTimeout,
    PyMongoError,
    WTimeoutError,
)

from .base import (
    COLLECTION_NAME,
    CREATED_AT_KEY,
    KEY_FIELDS,
    RECORD_FIELDS,
    BackendConnectionError,
    BackendError,
    BackendTimeoutError,
    Filter,
    Record,
    RecordDecodeError,
    check_fields,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNIQUE_INDEX_NAME = "wikiId_ref_version_unique"


async def _call(operation: Callable[[], Awaitable[T]]) -> T:
    """Start and await a driver call, translating driver errors to backend errors."""
    try:
        return await operation()
    except (ExecutionTimeout, NetworkTimeout, WTimeoutError) as e:
        raise BackendTimeoutError(f"MongoDB call timed out: {e}") from e
    except ConnectionFailure as e:
        raise BackendConnectionError(f"MongoDB connection failed: {e}") from e
    except BSONError as e:
        raise RecordDecodeError(f"MongoDB document could not be decoded: {e}") from e
    except OverflowError as e:
        # BSON only encodes signed 64-bit integers
        raise BackendError(f"MongoDB rejected value: {e}") from e
    except PyMongoError as e:
        raise BackendError(f"MongoDB call failed: {e}") from e


def _projection(fields: Sequence[str]) -> dict[str, bool]:
    check_fields(fields)
    projection = {f: True for f in fields if f != CREATED_AT_KEY}
    # _id carries the creation date
    projection["_id"] = CREATED_AT_KEY in fields
    return projection


def _decode(document: Mapping[str, Any], fields: Sequence[str]) -> Record:
    record: Record = {f: document[f] for f in fields if f != CREATED_AT_KEY and f in document}
    if CREATED_AT_KEY in fields:
        object_id = document.get("_id")
        if not isinstance(object_id, ObjectId):
            raise RecordDecodeError(f"Document _id is not an ObjectId: {object_id!r}")
        record[CREATED_AT_KEY] = object_id.generation_time
    return record


class MongoRecordSession:
    """Session bound to one MongoDB client."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    async def insert_if_absent(self, record: Mapping[str, Any]) -> bool:
        check_fields(list(record), RECORD_FIELDS)
        # rely on the unique index to ensure there will be no duplicate
        document = {f: record[f] for f in RECORD_FIELDS}
        try:
            await _call(lambda: self._collection.insert_one(document))
        except BackendError as e:
            if isinstance(e.__cause__, DuplicateKeyError):
                return False
            raise
        return True

    async def find_one(
        self,
        filter: Filter,
        projection: Sequence[str],
        max_field: Optional[str] = None,
    ) -> Optional[Record]:
        check_fields(list(filter))
        sort = None
        if max_field is not None:
            check_fields([max_field])
            sort = [(max_field, DESCENDING)]

        document = await _call(
            lambda: self._collection.find_one(dict(filter), _projection(projection), sort=sort)
        )
        if document is None:
            return None
        return _decode(document, projection)

    async def find_all(self, filter: Filter, projection: Sequence[str]) -> List[Record]:
        check_fields(list(filter))
        fields = _projection(projection)
        documents = await _call(lambda: self._collection.find(dict(filter), fields).to_list())
        return [_decode(d, projection) for d in documents]

    async def delete_all(self, filter: Filter) -> int:
        check_fields(list(filter))
        result = await _call(lambda: self._collection.delete_many(dict(filter)))
        return result.deleted_count

    async def ensure_unique_index(self) -> None:
        await _call(
            lambda: self._collection.create_index(
                [(f, ASCENDING) for f in KEY_FIELDS],
                unique=True,
                name=UNIQUE_INDEX_NAME,
            )
        )


class MongoRecordBackend:
    """MongoDB implementation of RecordBackend.

    Mirrors a connect/use/disconnect cycle per operation: every session
    builds its own AsyncMongoClient and closes it on exit. Connection
    pooling across operations is left to the driver and deployment.

    Attributes:
        config: MongoConfig with URI, database and timeouts

    Example:
        >>> backend = MongoRecordBackend(MongoConfig(uri="mongodb://localhost:27017"))
        >>> await backend.initialize()
        >>> async with backend.session() as session:
        ...     latest = await session.find_one(filter, ["version"], max_field="version")
    """

    def __init__(self, config: Any) -> None:
        """Initialize the MongoDB backend.

        Args:
            config: MongoConfig instance with connection settings
        """
        self.config = config

    def _client(self) -> AsyncMongoClient:
        return AsyncMongoClient(
            self.config.uri,
            serverSelectionTimeoutMS=self.config.timeout_ms,
            connectTimeoutMS=self.config.timeout_ms,
            tz_aware=True,
        )

    async def initialize(self) -> None:
        """Create the unique (wikiId, ref, version) index if missing."""
        async with self.session() as session:
            await session.ensure_unique_index()
        logger.info(
            "MongoDB record backend initialized",
            extra={"database": self.config.database, "collection": COLLECTION_NAME},
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[MongoRecordSession]:
        try:
            client = self._client()
        except PyMongoError as e:
            raise BackendConnectionError(f"Failed to create MongoDB client: {e}") from e

        try:
            collection = client[self.config.database][COLLECTION_NAME]
            yield MongoRecordSession(collection)
        finally:
            try:
                await client.close()
            except PyMongoError as e:
                logger.warning(f"Failed to disconnect from MongoDB: {e}")
