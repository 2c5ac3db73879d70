"""
PuzzleWiki server - Main entry point.

This module starts the wiki server with all components:
- Record backend (MongoDB or SQLite)
- Page store
- gRPC server

Usage:
    python -m puzzlewiki.wiki_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The backend uniqueness constraint exists before requests are accepted
    - Graceful shutdown waits for in-flight RPCs

How to change safely:
    - Add new components with enable/disable flags
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter

from .api import GrpcServer, WikiServicer
from .config import ServerConfig
from .pages import PageStore
from .storage import RecordBackend, create_record_backend

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("grpc").setLevel(logging.WARNING)


class Server:
    """PuzzleWiki server orchestrator.

    Manages the lifecycle of all server components:
    - Record backend initialization
    - Page store
    - gRPC server

    Attributes:
        config: Server configuration
        backend: Record backend
        store: Page store
        grpc_server: gRPC server wrapper

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        backend: RecordBackend | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
            backend: Optional record backend (built from config if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.backend: RecordBackend | None = backend
        self.store: PageStore | None = None
        self.grpc_server: GrpcServer | None = None

    async def start(self) -> None:
        """Start the server and serve until shutdown is requested."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting PuzzleWiki server")
        self.config.log_config()

        try:
            if self.backend is None:
                self.backend = create_record_backend(self.config)
            await self.backend.initialize()
            logger.info("Record backend ready")

            self.store = PageStore(self.backend)

            self.grpc_server = GrpcServer(
                servicer=WikiServicer(self.store),
                host=self.config.grpc.host,
                port=self.config.grpc.port,
                max_message_size=self.config.grpc.max_message_size,
            )
            await self.grpc_server.start()

            self._running = True
            logger.info("PuzzleWiki server started successfully")

            # Wait for shutdown signal
            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if self.grpc_server:
            await self.grpc_server.stop(self.config.grpc.grace_period_seconds)

        if self._running:
            self._running = False
            logger.info("PuzzleWiki server stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        return self._running


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    server = Server(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
