"""
gRPC server implementation for the PuzzleWiki server.

This module provides the gRPC API server that exposes the page store.
It uses grpc.aio and the generated puzzlewikiservice.Wiki service
definitions from proto/wiki.proto.

Invariants:
    - Every RPC maps to exactly one PageStore operation
    - Conflicts and missing pages are normal responses, not RPC errors
    - Internal failures abort with INTERNAL and no backend detail
    - A client cancel or deadline cancels the handler and its backend call

How to change safely:
    - Add new RPCs without modifying existing ones
    - Regenerate api/generated after editing proto/wiki.proto
    - Test with both old and new clients
"""

from __future__ import annotations

import logging
from typing import Optional

import grpc
from grpc import aio as grpc_aio

from ..pages import InternalServiceError, PageStore
from .generated import (
    Content,
    ContentRequest,
    Response,
    Version,
    VersionRequest,
    Versions,
    WikiRequest,
    add_WikiServicer_to_server,
)
from .generated import WikiServicer as WikiServicerBase

logger = logging.getLogger(__name__)


class WikiServicer(WikiServicerBase):
    """Wiki service implementation.

    Translates protobuf requests into PageStore calls and store results
    into protobuf responses. Holds no state besides the store.

    Attributes:
        store: PageStore serving the operations
    """

    def __init__(self, store: PageStore) -> None:
        """Initialize the servicer.

        Args:
            store: PageStore instance
        """
        self.store = store

    async def Load(self, request: WikiRequest, context: grpc_aio.ServicerContext) -> Content:
        try:
            content = await self.store.load(request.wikiId, request.wikiRef, request.version)
        except InternalServiceError as e:
            # already logged by the store
            await context.abort(grpc.StatusCode.INTERNAL, str(e))
        return Content(version=content.version, text=content.text, createdAt=content.created_at)

    async def Store(self, request: ContentRequest, context: grpc_aio.ServicerContext) -> Response:
        try:
            response = await self.store.store(
                request.wikiId,
                request.wikiRef,
                request.userId,
                request.text,
                request.last,
            )
        except InternalServiceError as e:
            await context.abort(grpc.StatusCode.INTERNAL, str(e))
        return Response(success=response.success)

    async def ListVersions(self, request: VersionRequest, context: grpc_aio.ServicerContext) -> Versions:
        try:
            versions = await self.store.list_versions(request.wikiId, request.wikiRef)
        except InternalServiceError as e:
            await context.abort(grpc.StatusCode.INTERNAL, str(e))
        return Versions(list=[Version(number=v.number, userId=v.user_id) for v in versions])

    async def Delete(self, request: WikiRequest, context: grpc_aio.ServicerContext) -> Response:
        try:
            response = await self.store.delete(request.wikiId, request.wikiRef, request.version)
        except InternalServiceError as e:
            await context.abort(grpc.StatusCode.INTERNAL, str(e))
        return Response(success=response.success)


class GrpcServer:
    """gRPC server wrapper for the wiki service.

    This class manages the gRPC server lifecycle including:
    - Server initialization
    - Service registration
    - Graceful shutdown

    Example:
        >>> server = GrpcServer(servicer, port=50051)
        >>> await server.start()
        >>> # Server is now running
        >>> await server.stop()
    """

    def __init__(
        self,
        servicer: WikiServicer,
        host: str = "0.0.0.0",
        port: int = 50051,
        max_message_size: int = 4 * 1024 * 1024,
    ) -> None:
        """Initialize the gRPC server.

        Args:
            servicer: WikiServicer instance
            host: Host to bind to
            port: Port to listen on (0 picks a free port)
            max_message_size: Maximum message size in bytes
        """
        self.servicer = servicer
        self.host = host
        self.port = port
        self.max_message_size = max_message_size
        self._server: Optional[grpc_aio.Server] = None
        self._bound_port: Optional[int] = None

    async def start(self) -> None:
        """Start the gRPC server."""
        if self._server is not None:
            logger.warning("Server already running")
            return

        server = grpc_aio.server(
            options=[
                ("grpc.max_send_message_length", self.max_message_size),
                ("grpc.max_receive_message_length", self.max_message_size),
            ]
        )
        add_WikiServicer_to_server(self.servicer, server)
        self._bound_port = server.add_insecure_port(f"{self.host}:{self.port}")
        await server.start()
        self._server = server

        logger.info(
            f"gRPC server started on {self.host}:{self._bound_port}",
            extra={"host": self.host, "port": self._bound_port},
        )

    async def stop(self, grace_period: float = 5.0) -> None:
        """Stop the gRPC server gracefully.

        Args:
            grace_period: Time to wait for pending RPCs to complete
        """
        if self._server is None:
            return

        logger.info("Stopping gRPC server")
        await self._server.stop(grace_period)
        self._server = None

    async def wait_for_termination(self) -> None:
        if self._server is not None:
            await self._server.wait_for_termination()

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually bound, known once started."""
        return self._bound_port

    @property
    def is_running(self) -> bool:
        """Whether the server is running."""
        return self._server is not None
