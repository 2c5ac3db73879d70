"""
Async client for the PuzzleWiki gRPC service.

This module provides WikiClient, a thin wrapper over a grpc.aio channel
using the generated puzzlewikiservice.Wiki stub shared with the server.

The server never retries a losing write. A caller that wants its text
stored on top of whatever is current follows this protocol, implemented
by store_latest():

    1. load(version=0) to learn the current version v
    2. store(last=v)
    3. on success=False another writer won v+1; go back to 1

Example:
    >>> async with WikiClient("localhost:50051") as wiki:
    ...     content = await wiki.load(1, "home")
    ...     ok = await wiki.store(1, "home", user_id=7, text="Hello", last=content.version)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import grpc
from grpc import aio as grpc_aio

from ..wiki_server.api.generated import (
    ContentRequest,
    VersionRequest,
    WikiRequest,
    WikiStub,
)
from .errors import VersionConflictError, WikiServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageContent:
    """A page version returned by load().

    Attributes:
        version: Version number, 0 if the page or version does not exist
        text: Page text
        created_at: Creation time (Unix seconds)
    """

    version: int
    text: str
    created_at: int

    @property
    def exists(self) -> bool:
        return self.version != 0


@dataclass(frozen=True)
class PageVersion:
    """A history entry returned by list_versions()."""

    number: int
    user_id: int


class WikiClient:
    """Client for the wiki service.

    Manages the channel lifecycle and exposes one coroutine per RPC.
    RPC failures are raised as WikiServiceError; write conflicts are
    returned as False.
    """

    def __init__(
        self,
        address: str = "localhost:50051",
        *,
        timeout: Optional[float] = 10.0,
        credentials: Optional[grpc.ChannelCredentials] = None,
    ) -> None:
        """Initialize the client.

        Args:
            address: Server address (host:port)
            timeout: Per-call deadline in seconds (None for no deadline)
            credentials: Optional TLS credentials for a secure channel
        """
        self._address = address
        self._timeout = timeout
        self._credentials = credentials
        self._channel: Optional[grpc_aio.Channel] = None
        self._stub: Optional[WikiStub] = None

    async def connect(self) -> None:
        """Open the channel to the server."""
        if self._channel is not None:
            return

        if self._credentials is not None:
            self._channel = grpc_aio.secure_channel(self._address, self._credentials)
        else:
            self._channel = grpc_aio.insecure_channel(self._address)
        self._stub = WikiStub(self._channel)
        logger.debug(f"Connected to wiki server at {self._address}")

    async def close(self) -> None:
        """Close the channel."""
        if self._channel:
            await self._channel.close()
            self._channel = None
            self._stub = None
            logger.debug("Disconnected from wiki server")

    async def __aenter__(self) -> WikiClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _call(self, method: str, request: Any) -> Any:
        if self._stub is None:
            raise RuntimeError("Not connected. Call connect() first.")

        rpc = getattr(self._stub, method)
        try:
            return await rpc(request, timeout=self._timeout)
        except grpc.RpcError as e:
            raise WikiServiceError(
                f"{method} failed: {e.details()}",
                method=method,
                status=e.code().name,
            ) from e

    async def load(self, wiki_id: int, ref: str, version: int = 0) -> PageContent:
        """Load a page version (0 for the latest)."""
        response = await self._call(
            "Load", WikiRequest(wikiId=wiki_id, wikiRef=ref, version=version)
        )
        return PageContent(
            version=response.version,
            text=response.text,
            created_at=response.createdAt,
        )

    async def store(self, wiki_id: int, ref: str, user_id: int, text: str, last: int) -> bool:
        """Create version ``last + 1``; False if another writer got there first."""
        response = await self._call(
            "Store",
            ContentRequest(wikiId=wiki_id, wikiRef=ref, last=last, userId=user_id, text=text),
        )
        return response.success

    async def list_versions(self, wiki_id: int, ref: str) -> List[PageVersion]:
        """List the versions of a page, in server order."""
        response = await self._call("ListVersions", VersionRequest(wikiId=wiki_id, wikiRef=ref))
        return [PageVersion(number=v.number, user_id=v.userId) for v in response.list]

    async def delete(self, wiki_id: int, ref: str, version: int) -> bool:
        """Delete an exact version; succeeds even if it did not exist."""
        response = await self._call(
            "Delete", WikiRequest(wikiId=wiki_id, wikiRef=ref, version=version)
        )
        return response.success

    async def store_latest(
        self,
        wiki_id: int,
        ref: str,
        user_id: int,
        text: str,
        max_attempts: int = 3,
    ) -> int:
        """Store text as the next version after whatever is current.

        Re-reads the current version after every conflict.

        Args:
            wiki_id: Wiki identifier
            ref: Page reference
            user_id: Author id
            text: New page text
            max_attempts: Number of store attempts before giving up

        Returns:
            The version number that was created

        Raises:
            VersionConflictError: If every attempt lost to another writer
            WikiServiceError: If an RPC fails
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_seen = 0
        for attempt in range(1, max_attempts + 1):
            current = await self.load(wiki_id, ref)
            last_seen = current.version
            if await self.store(wiki_id, ref, user_id, text, last=last_seen):
                return last_seen + 1
            logger.debug(
                "Store conflicted, reloading",
                extra={"wiki_id": wiki_id, "ref": ref, "last": last_seen, "attempt": attempt},
            )

        raise VersionConflictError(
            f"Could not store {ref!r} after {max_attempts} attempts",
            wiki_id=wiki_id,
            ref=ref,
            attempts=max_attempts,
            last_seen=last_seen,
        )
