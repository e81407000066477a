"""Derived data (image transforms, thumbnails) that references file records."""

from __future__ import annotations

import logging
import sqlite3
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from volindex.models.errors import RepositoryError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from volindex.data.db import Database

logger = logging.getLogger(__name__)


class DerivedCache:
    """SQL index of derived data generated from records."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def record(self, record_id: int, kind: str, location: str = "") -> None:
        """Register derived data of one kind for a record, replacing any earlier entry."""
        try:
            async with self._db.transaction():
                await self._db.execute(
                    """INSERT INTO derived_cache (record_id, kind, location, created_at)
                       VALUES (?, ?, ?, ?)
                       ON CONFLICT(record_id, kind) DO UPDATE SET
                           location = excluded.location,
                           created_at = excluded.created_at""",
                    (record_id, kind, location, datetime.now(UTC).isoformat()),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to cache {kind} for record {record_id}: {exc}") from exc

    async def count(self, record_id: int) -> int:
        row = await self._db.fetch_one(
            "SELECT COUNT(*) as cnt FROM derived_cache WHERE record_id = ?", (record_id,)
        )
        return int(row["cnt"]) if row else 0

    async def invalidate(self, record_ids: Iterable[int]) -> int:
        """Drop derived data for the given records. Returns rows removed."""
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        try:
            async with self._db.transaction():
                cursor = await self._db.execute(
                    f"DELETE FROM derived_cache WHERE record_id IN ({placeholders})",
                    tuple(ids),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to invalidate derived cache: {exc}") from exc
        removed = max(cursor.rowcount, 0)
        if removed:
            logger.debug("Invalidated %d derived cache rows for %d records", removed, len(ids))
        return removed
