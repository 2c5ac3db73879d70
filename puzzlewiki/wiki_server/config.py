"""
Configuration management for the PuzzleWiki server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set explicit values for the MongoDB URI
    - Secrets (MongoDB credentials) are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)


class StorageBackend(Enum):
    """Supported persistent record backends."""

    MONGODB = "mongodb"
    SQLITE = "sqlite"


@dataclass(frozen=True)
class GrpcConfig:
    """gRPC server configuration.

    Attributes:
        host: Address to bind the gRPC server
        port: Port to listen on
        max_message_size: Maximum message size in bytes
        grace_period_seconds: Time given to in-flight RPCs on shutdown
    """

    host: str = "0.0.0.0"
    port: int = 50051
    max_message_size: int = 4 * 1024 * 1024  # 4MB
    grace_period_seconds: float = 5.0

    @property
    def bind_address(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def from_env(cls) -> GrpcConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("GRPC_HOST", "0.0.0.0"),
            port=int(os.getenv("SERVICE_PORT", "50051")),
            max_message_size=int(os.getenv("GRPC_MAX_MESSAGE_SIZE", str(4 * 1024 * 1024))),
            grace_period_seconds=float(os.getenv("GRPC_GRACE_SECONDS", "5.0")),
        )


@dataclass(frozen=True)
class MongoConfig:
    """MongoDB backend configuration.

    Attributes:
        uri: MongoDB connection string (may contain credentials)
        database: Database holding the pages collection
        timeout_ms: Server selection and connect timeout in milliseconds
    """

    uri: str = "mongodb://localhost:27017"
    database: str = "puzzlewiki"
    timeout_ms: int = 5000

    @property
    def redacted_uri(self) -> str:
        """The URI with any user info replaced, safe for logs."""
        parts = urlsplit(self.uri)
        if "@" not in parts.netloc:
            return self.uri
        host = parts.netloc.rsplit("@", 1)[1]
        return urlunsplit(parts._replace(netloc=f"***@{host}"))

    @classmethod
    def from_env(cls) -> MongoConfig:
        """Load configuration from environment variables."""
        return cls(
            uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
            database=os.getenv("MONGODB_DATABASE", "puzzlewiki"),
            timeout_ms=int(os.getenv("MONGODB_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class SqliteConfig:
    """SQLite backend configuration.

    Attributes:
        data_dir: Directory for the SQLite database
        db_name: Database file name inside data_dir
        wal_mode: SQLite WAL journal mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    data_dir: str = "/var/lib/puzzlewiki"
    db_name: str = "wiki.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> SqliteConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "/var/lib/puzzlewiki"),
            db_name=os.getenv("SQLITE_DB_NAME", "wiki.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        storage_backend: Which record backend to use
        grpc: gRPC server configuration
        mongo: MongoDB configuration (if storage_backend is MONGODB)
        sqlite: SQLite configuration (if storage_backend is SQLITE)
        observability: Logging configuration
    """

    storage_backend: StorageBackend = StorageBackend.MONGODB
    grpc: GrpcConfig = field(default_factory=GrpcConfig)
    mongo: MongoConfig = field(default_factory=MongoConfig)
    sqlite: SqliteConfig = field(default_factory=SqliteConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        backend_str = os.getenv("WIKI_BACKEND", "mongodb").lower()
        try:
            storage_backend = StorageBackend(backend_str)
        except ValueError:
            raise ValueError(f"Invalid WIKI_BACKEND '{backend_str}'. Must be one of: mongodb, sqlite")

        config = cls(
            storage_backend=storage_backend,
            grpc=GrpcConfig.from_env(),
            mongo=MongoConfig.from_env(),
            sqlite=SqliteConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not 0 < self.grpc.port < 65536:
            raise ValueError(f"SERVICE_PORT must be between 1 and 65535, got {self.grpc.port}")

        if self.storage_backend == StorageBackend.MONGODB:
            if not self.mongo.uri:
                raise ValueError("MONGODB_URI is required when WIKI_BACKEND=mongodb")
            if not self.mongo.database:
                raise ValueError("MONGODB_DATABASE is required when WIKI_BACKEND=mongodb")
        elif self.storage_backend == StorageBackend.SQLITE:
            if not self.sqlite.db_name:
                raise ValueError("SQLITE_DB_NAME is required when WIKI_BACKEND=sqlite")
            if not os.path.exists(self.sqlite.data_dir):
                logger.warning(
                    f"Data directory does not exist: {self.sqlite.data_dir}. "
                    "It will be created on startup."
                )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "storage_backend": self.storage_backend.value,
                "grpc_bind": self.grpc.bind_address,
                "mongodb_uri": self.mongo.redacted_uri
                if self.storage_backend == StorageBackend.MONGODB
                else None,
                "mongodb_database": self.mongo.database
                if self.storage_backend == StorageBackend.MONGODB
                else None,
                "sqlite_data_dir": self.sqlite.data_dir
                if self.storage_backend == StorageBackend.SQLITE
                else None,
                "log_level": self.observability.log_level,
            },
        )
