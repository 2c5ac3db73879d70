"""
SQLite record backend for single-node deployments.

This module stores page versions in one SQLite database file:
- The primary key (wiki_id, ref, version) is the uniqueness constraint
- created_at is filled by a column default, never by the caller
- One connection per session, closed when the session exits

Invariants:
    - A failed insert never leaves a partial row
    - created_at is Unix milliseconds assigned by SQLite at insert time
    - Cancelling an in-flight query interrupts it on the connection

How to change safely:
    - Schema changes must keep the primary key intact
    - Add indexes with IF NOT EXISTS so initialize() stays idempotent
    - Test with a real file database, ':memory:' is per connection

Table schema:
    pages:
        - wiki_id INTEGER
        - ref TEXT
        - version INTEGER
        - user_id INTEGER
        - text TEXT
        - created_at INTEGER (Unix ms, defaulted)
        - PRIMARY KEY (wiki_id, ref, version)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Callable, List, Mapping, Optional, Sequence, TypeVar

from .base import (
    COLLECTION_NAME,
    CREATED_AT_KEY,
    RECORD_FIELDS,
    TEXT_KEY,
    USER_ID_KEY,
    VERSION_KEY,
    WIKI_ID_KEY,
    WIKI_REF_KEY,
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

_COLUMNS = {
    WIKI_ID_KEY: "wiki_id",
    WIKI_REF_KEY: "ref",
    VERSION_KEY: "version",
    USER_ID_KEY: "user_id",
    TEXT_KEY: "text",
    CREATED_AT_KEY: "created_at",
}


def _wrap_error(e: Exception) -> BackendError:
    if isinstance(e, OverflowError):
        return BackendError(f"SQLite rejected value: {e}")
    if isinstance(e, sqlite3.OperationalError) and "locked" in str(e):
        return BackendTimeoutError(f"SQLite busy: {e}")
    return BackendError(f"SQLite call failed: {e}")


class SqliteRecordSession:
    """Session bound to one SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def _run(self, fn: Callable[[], T]) -> T:
        """Run a blocking call in a worker thread, interrupting it on cancel.

        On cancellation the worker is interrupted and awaited, so the
        connection is idle again before the session closes it.
        """
        worker = asyncio.ensure_future(asyncio.to_thread(fn))
        try:
            return await asyncio.shield(worker)
        except asyncio.CancelledError:
            self._conn.interrupt()
            await asyncio.wait([worker])
            if not worker.cancelled():
                # interrupted calls end in OperationalError, nobody awaits it
                worker.exception()
            raise
        except (sqlite3.Error, OverflowError) as e:
            raise _wrap_error(e) from e

    async def insert_if_absent(self, record: Mapping[str, Any]) -> bool:
        check_fields(list(record), RECORD_FIELDS)
        columns = [_COLUMNS[f] for f in RECORD_FIELDS]
        values = [record[f] for f in RECORD_FIELDS]
        sql = (
            f"INSERT INTO {COLLECTION_NAME} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )

        def insert() -> bool:
            try:
                self._write(sql, values)
            except sqlite3.IntegrityError as e:
                if "UNIQUE constraint failed" in str(e):
                    return False
                raise
            return True

        return await self._run(insert)

    async def find_one(
        self,
        filter: Filter,
        projection: Sequence[str],
        max_field: Optional[str] = None,
    ) -> Optional[Record]:
        where, params = self._where(filter)
        sql = f"SELECT {self._select(projection)} FROM {COLLECTION_NAME}{where}"
        if max_field is not None:
            check_fields([max_field])
            sql += f" ORDER BY {_COLUMNS[max_field]} DESC"
        sql += " LIMIT 1"

        row = await self._run(lambda: self._conn.execute(sql, params).fetchone())
        if row is None:
            return None
        return self._decode(row, projection)

    async def find_all(self, filter: Filter, projection: Sequence[str]) -> List[Record]:
        where, params = self._where(filter)
        sql = f"SELECT {self._select(projection)} FROM {COLLECTION_NAME}{where}"

        rows = await self._run(lambda: self._conn.execute(sql, params).fetchall())
        return [self._decode(row, projection) for row in rows]

    async def delete_all(self, filter: Filter) -> int:
        where, params = self._where(filter)
        sql = f"DELETE FROM {COLLECTION_NAME}{where}"

        return await self._run(lambda: self._write(sql, params))

    def _write(self, sql: str, params: Sequence[Any]) -> int:
        # take the write lock up front so busy_timeout applies to lock waits
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            rowcount = self._conn.execute(sql, params).rowcount
        except BaseException:
            self._conn.rollback()
            raise
        self._conn.commit()
        return rowcount

    @staticmethod
    def _select(projection: Sequence[str]) -> str:
        check_fields(projection)
        return ", ".join(_COLUMNS[f] for f in projection)

    @staticmethod
    def _where(filter: Filter) -> tuple[str, list[Any]]:
        check_fields(list(filter))
        if not filter:
            return "", []
        clause = " AND ".join(f"{_COLUMNS[f]} = ?" for f in filter)
        return f" WHERE {clause}", list(filter.values())

    @staticmethod
    def _decode(row: sqlite3.Row, projection: Sequence[str]) -> Record:
        record: Record = {}
        for name in projection:
            value = row[_COLUMNS[name]]
            if name == CREATED_AT_KEY:
                if not isinstance(value, int):
                    raise RecordDecodeError(f"Invalid created_at value: {value!r}")
                value = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
            record[name] = value
        return record


class SqliteRecordBackend:
    """SQLite implementation of RecordBackend.

    Thread safety:
        Each session opens its own connection. Blocking calls run in a
        worker thread so the event loop stays responsive; SQLite handles
        concurrent writers through its file lock and busy timeout.

    Example:
        >>> backend = SqliteRecordBackend(SqliteConfig(data_dir="/var/lib/puzzlewiki"))
        >>> await backend.initialize()
        >>> async with backend.session() as session:
        ...     await session.find_all({"wikiId": 1, "ref": "home"}, ["version"])
    """

    connection_factory = sqlite3.Connection

    def __init__(self, config: Any) -> None:
        """Initialize the SQLite backend.

        Args:
            config: SqliteConfig instance
        """
        self.config = config
        self.db_path = Path(config.data_dir) / config.db_name

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.config.busy_timeout_ms / 1000.0,
            check_same_thread=False,
            isolation_level=None,
            factory=self.connection_factory,
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {int(self.config.busy_timeout_ms)}")
            if self.config.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    async def initialize(self) -> None:
        """Create the database file and pages table if missing."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        def create_schema() -> None:
            conn = self._connect()
            try:
                conn.executescript(f"""
                    CREATE TABLE IF NOT EXISTS {COLLECTION_NAME} (
                        wiki_id INTEGER NOT NULL,
                        ref TEXT NOT NULL,
                        version INTEGER NOT NULL,
                        user_id INTEGER NOT NULL,
                        text TEXT NOT NULL,
                        created_at INTEGER NOT NULL DEFAULT
                            (CAST(ROUND((julianday('now') - 2440587.5) * 86400000) AS INTEGER)),
                        PRIMARY KEY (wiki_id, ref, version)
                    );
                """)
            finally:
                conn.close()

        try:
            await asyncio.to_thread(create_schema)
        except sqlite3.Error as e:
            raise BackendConnectionError(f"Failed to initialize SQLite database: {e}") from e

        logger.info("SQLite record backend initialized", extra={"db_path": str(self.db_path)})

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SqliteRecordSession]:
        try:
            conn = await asyncio.to_thread(self._connect)
        except sqlite3.Error as e:
            raise BackendConnectionError(f"Failed to open SQLite database: {e}") from e

        try:
            yield SqliteRecordSession(conn)
        finally:
            conn.close()
