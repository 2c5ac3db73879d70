"""
Versioned page store for the wiki server.

This module implements the four page operations on top of a record backend:
- load: read the latest or an exact version of a page
- store: create version last + 1, detecting concurrent writers
- list_versions: enumerate (version, author) pairs of a page
- delete: remove one exact version

Writers use optimistic concurrency. A Store names the last version the
caller has seen and the backend's uniqueness constraint on
(wikiId, ref, version) decides the winner. A losing writer gets
success=False and is expected to Load again and retry with the refreshed
``last``; this module never retries on its own.

Invariants:
    - A failed store never consumes a version number
    - Missing pages/versions load as the sentinel Content (version 0)
    - Conflicts and not-found are return values, never logged as errors
    - Backend failures are logged here and raised as InternalServiceError
      with no backend detail

How to change safely:
    - Keep one backend round-trip per operation
    - Do not add locks here, the backend insert is the only synchronisation
    - Callers rely on list_versions order being unspecified, do not sort
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..storage.base import (
    CREATED_AT_KEY,
    TEXT_KEY,
    USER_ID_KEY,
    VERSION_KEY,
    WIKI_ID_KEY,
    WIKI_REF_KEY,
    BackendError,
    Record,
    RecordBackend,
)

logger = logging.getLogger(__name__)

BACKEND_CALL_MSG = "Failed during backend call"

# key fields are excluded, the caller already knows them
CONTENT_FIELDS = (VERSION_KEY, TEXT_KEY, CREATED_AT_KEY)
VERSION_FIELDS = (VERSION_KEY, USER_ID_KEY)


class InternalServiceError(Exception):
    """Opaque failure of a page operation.

    Carries no backend detail; the detail is logged where it is raised.
    """

    def __init__(self) -> None:
        super().__init__("internal service error")


@dataclass(frozen=True)
class Content:
    """One page version as seen by readers.

    Attributes:
        version: Version number (0 means the page or version does not exist)
        text: Page text
        created_at: Creation time in Unix seconds, assigned by the backend
    """

    version: int = 0
    text: str = ""
    created_at: int = 0

    @property
    def exists(self) -> bool:
        return self.version != 0

    def to_dict(self) -> Dict[str, Any]:
        return {"version": self.version, "text": self.text, "createdAt": self.created_at}


@dataclass(frozen=True)
class Version:
    """History entry of a page."""

    number: int
    user_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {"number": self.number, "userId": self.user_id}


@dataclass(frozen=True)
class Response:
    """Outcome of a write operation."""

    success: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success}


def _page_filter(wiki_id: int, ref: str, version: Optional[int] = None) -> Dict[str, Any]:
    filter: Dict[str, Any] = {WIKI_ID_KEY: wiki_id, WIKI_REF_KEY: ref}
    if version is not None:
        filter[VERSION_KEY] = version
    return filter


def _extract_int(value: Any) -> int:
    # bool is an int subclass but never a valid stored number
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {type(value).__name__}")
    return value


def convert_to_content(record: Record) -> Content:
    """Decode a projected record into Content.

    Raises:
        KeyError, TypeError: If the record is malformed
    """
    text = record.get(TEXT_KEY, "")
    if not isinstance(text, str):
        raise TypeError(f"expected text to be a string, got {type(text).__name__}")
    return Content(
        version=_extract_int(record[VERSION_KEY]),
        text=text,
        created_at=int(record[CREATED_AT_KEY].timestamp()),
    )


def convert_to_version(record: Record) -> Version:
    """Decode a projected record into a Version entry."""
    return Version(
        number=_extract_int(record[VERSION_KEY]),
        user_id=_extract_int(record[USER_ID_KEY]),
    )


class PageStore:
    """Versioned content store over a RecordBackend.

    The store only holds its backend reference; every operation opens its
    own backend session and releases it before returning.

    Attributes:
        backend: Record backend providing scoped sessions

    Example:
        >>> store = PageStore(InMemoryRecordBackend())
        >>> await store.store(wiki_id=1, ref="home", user_id=7, text="A", last=0)
        Response(success=True)
        >>> (await store.load(1, "home")).version
        1
    """

    def __init__(self, backend: RecordBackend) -> None:
        """Initialize the page store.

        Args:
            backend: RecordBackend instance
        """
        self._backend = backend

    def _internal_error(self, operation: str, wiki_id: int, ref: str, **extra: Any) -> InternalServiceError:
        logger.error(
            BACKEND_CALL_MSG,
            exc_info=True,
            extra={"operation": operation, "wiki_id": wiki_id, "ref": ref, **extra},
        )
        return InternalServiceError()

    async def load(self, wiki_id: int, ref: str, version: int = 0) -> Content:
        """Load one version of a page.

        Args:
            wiki_id: Wiki identifier
            ref: Page reference within the wiki
            version: Exact version to load, 0 for the latest

        Returns:
            The Content, or the sentinel Content() with version 0 if the
            page or the requested version does not exist

        Raises:
            InternalServiceError: On backend or decode failure
        """
        if version:
            filter, max_field = _page_filter(wiki_id, ref, version), None
        else:
            filter, max_field = _page_filter(wiki_id, ref), VERSION_KEY

        try:
            async with self._backend.session() as session:
                record = await session.find_one(filter, CONTENT_FIELDS, max_field=max_field)
            if record is None:
                # an empty Content has version 0, which is recognized by clients
                return Content()
            return convert_to_content(record)
        except (BackendError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise self._internal_error("Load", wiki_id, ref, version=version) from e

    async def store(self, wiki_id: int, ref: str, user_id: int, text: str, last: int) -> Response:
        """Create version ``last + 1`` of a page.

        Args:
            wiki_id: Wiki identifier
            ref: Page reference within the wiki
            user_id: Author of the new version
            text: Content of the new version
            last: Latest version known to the caller (0 for a new page)

        Returns:
            Response(success=True) if the version was created,
            Response(success=False) if another writer already created it

        Raises:
            InternalServiceError: On backend failure
        """
        new_version = last + 1
        page = {
            WIKI_ID_KEY: wiki_id,
            WIKI_REF_KEY: ref,
            VERSION_KEY: new_version,
            USER_ID_KEY: user_id,
            TEXT_KEY: text,
        }

        try:
            async with self._backend.session() as session:
                created = await session.insert_if_absent(page)
        except BackendError as e:
            raise self._internal_error("Store", wiki_id, ref, version=new_version) from e

        return Response(success=created)

    async def list_versions(self, wiki_id: int, ref: str) -> List[Version]:
        """List every stored version of a page with its author.

        The order is whatever the backend returns; callers needing a
        sorted history sort on Version.number themselves.

        Raises:
            InternalServiceError: On backend or decode failure
        """
        try:
            async with self._backend.session() as session:
                records = await session.find_all(_page_filter(wiki_id, ref), VERSION_FIELDS)
            return [convert_to_version(r) for r in records]
        except (BackendError, KeyError, TypeError, ValueError) as e:
            raise self._internal_error("ListVersions", wiki_id, ref) from e

    async def delete(self, wiki_id: int, ref: str, version: int) -> Response:
        """Delete an exact version of a page.

        Succeeds whether or not the version existed.

        Raises:
            InternalServiceError: On backend failure
        """
        try:
            async with self._backend.session() as session:
                await session.delete_all(_page_filter(wiki_id, ref, version))
        except BackendError as e:
            raise self._internal_error("Delete", wiki_id, ref, version=version) from e

        return Response(success=True)
