"""Async SQLite connection manager using aiosqlite."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any

import aiosqlite

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS volumes (
    volume_id TEXT PRIMARY KEY,
    root_path TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    volume_id TEXT NOT NULL,
    path TEXT NOT NULL,
    kind TEXT NOT NULL CHECK (kind IN ('file', 'folder')),
    size INTEGER NOT NULL DEFAULT 0,
    mtime INTEGER NOT NULL DEFAULT 0,
    date_indexed TEXT NOT NULL,
    UNIQUE(volume_id, path)
);

CREATE TABLE IF NOT EXISTS derived_cache (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    record_id INTEGER NOT NULL,
    kind TEXT NOT NULL,
    location TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    UNIQUE(record_id, kind)
);

CREATE TABLE IF NOT EXISTS indexing_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    indexed_volumes TEXT NOT NULL,
    cache_remote_images INTEGER NOT NULL DEFAULT 0,
    run_as_background_job INTEGER NOT NULL DEFAULT 0,
    volume_index INTEGER NOT NULL DEFAULT 0,
    cursor INTEGER NOT NULL DEFAULT 0,
    processed_entries INTEGER NOT NULL DEFAULT 0,
    total_entries INTEGER NOT NULL DEFAULT 0,
    action_required INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active' CHECK (
        status IN ('active', 'stopped', 'finished')
    ),
    skipped_entries TEXT NOT NULL DEFAULT '[]',
    missing_entries TEXT NOT NULL DEFAULT '[]',
    date_created TEXT NOT NULL,
    date_updated TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS indexing_seen (
    session_id INTEGER NOT NULL REFERENCES indexing_sessions(id) ON DELETE CASCADE,
    volume_id TEXT NOT NULL,
    path TEXT NOT NULL,
    PRIMARY KEY (session_id, volume_id, path)
);

CREATE INDEX IF NOT EXISTS idx_records_volume ON records(volume_id);
CREATE INDEX IF NOT EXISTS idx_derived_cache_record ON derived_cache(record_id);
CREATE INDEX IF NOT EXISTS idx_indexing_sessions_status ON indexing_sessions(status);
"""


class Database:
    """Async SQLite connection manager using aiosqlite."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def connect(self) -> Database:
        """Connect to SQLite and ensure schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self._db_path))
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA synchronous=NORMAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._ensure_schema()
        await self._conn.commit()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            msg = "Database not connected. Use 'async with Database(path) as db:'"
            raise RuntimeError(msg)
        return self._conn

    async def execute(self, sql: str, params: tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        """Execute a SQL statement."""
        return await self.conn.execute(sql, params)

    async def execute_many(self, sql: str, params_seq: list[tuple[Any, ...]]) -> None:
        """Execute a SQL statement with many parameter sets."""
        await self.conn.executemany(sql, params_seq)

    async def fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        """Fetch all rows from a query."""
        cursor = await self.conn.execute(sql, params)
        return await cursor.fetchall()  # type: ignore[return-value]

    async def fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> aiosqlite.Row | None:
        """Fetch a single row from a query."""
        cursor = await self.conn.execute(sql, params)
        return await cursor.fetchone()  # type: ignore[return-value]

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self.conn.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        """Run a block of writes atomically.

        Writers sharing this connection are serialized so one caller's
        rollback can never discard another caller's uncommitted rows.
        """
        async with self._write_lock:
            await self.conn.execute("SAVEPOINT write_txn")
            try:
                yield self
            except BaseException:
                await self.conn.execute("ROLLBACK TO write_txn")
                await self.conn.execute("RELEASE write_txn")
                raise
            await self.conn.execute("RELEASE write_txn")
            await self.conn.commit()

    async def _ensure_schema(self) -> None:
        """Rebuild schema when version changes; otherwise ensure all objects exist."""
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS app_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        row = await self.fetch_one("SELECT value FROM app_meta WHERE key = 'schema_version'")
        current_version = int(row["value"]) if row and str(row["value"]).isdigit() else 0
        if current_version == SCHEMA_VERSION:
            await self.conn.executescript(SCHEMA_SQL)
            return

        logger.info("Rebuilding DB schema from version %s to %s", current_version, SCHEMA_VERSION)
        await self.conn.execute("PRAGMA foreign_keys=OFF")
        await self.conn.executescript("""
            DROP TABLE IF EXISTS indexing_seen;
            DROP TABLE IF EXISTS indexing_sessions;
            DROP TABLE IF EXISTS derived_cache;
        """)
        await self.conn.execute("PRAGMA foreign_keys=ON")
        await self.conn.executescript(SCHEMA_SQL)
        await self.conn.execute(
            "INSERT OR REPLACE INTO app_meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
