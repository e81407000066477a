"""Indexing session persistence with optimistic per-session versioning."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from volindex.models.errors import RepositoryError, VersionConflictError
from volindex.models.sessions import (
    IndexingSession,
    MissingRecord,
    SessionStatus,
    SkipRecord,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from aiosqlite import Row

    from volindex.data.db import Database

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _dump_list(items: Sequence[SkipRecord] | Sequence[MissingRecord]) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items])


def _row_to_session(row: Row) -> IndexingSession:
    r: dict[str, object] = dict(row)
    return IndexingSession(
        id=int(r["id"]),  # type: ignore[arg-type]
        indexed_volumes=json.loads(str(r["indexed_volumes"] or "[]")),
        cache_remote_images=bool(r["cache_remote_images"]),
        run_as_background_job=bool(r["run_as_background_job"]),
        volume_index=int(r["volume_index"] or 0),  # type: ignore[arg-type]
        cursor=int(r["cursor"] or 0),  # type: ignore[arg-type]
        processed_entries=int(r["processed_entries"] or 0),  # type: ignore[arg-type]
        total_entries=int(r["total_entries"] or 0),  # type: ignore[arg-type]
        action_required=bool(r["action_required"]),
        status=SessionStatus(str(r["status"])),
        skipped_entries=[
            SkipRecord.model_validate(item)
            for item in json.loads(str(r["skipped_entries"] or "[]"))
        ],
        missing_entries=[
            MissingRecord.model_validate(item)
            for item in json.loads(str(r["missing_entries"] or "[]"))
        ],
        date_created=str(r["date_created"] or ""),
        date_updated=str(r["date_updated"] or ""),
        version=int(r["version"] or 0),  # type: ignore[arg-type]
    )


class SessionStore:
    """SQL store for indexing sessions.

    ``update_if_version`` is the only way a step's progress is written. It is
    applied only if the stored version still equals the one the caller read.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def create(self, session: IndexingSession) -> IndexingSession:
        now = _now()
        try:
            async with self._db.transaction():
                cursor = await self._db.execute(
                    """INSERT INTO indexing_sessions
                    (indexed_volumes, cache_remote_images, run_as_background_job,
                     volume_index, cursor, processed_entries, total_entries,
                     action_required, status, skipped_entries, missing_entries,
                     date_created, date_updated, version)
                    VALUES (?, ?, ?, 0, 0, 0, ?, 0, 'active', '[]', '[]', ?, ?, 0)""",
                    (
                        json.dumps(session.indexed_volumes),
                        1 if session.cache_remote_images else 0,
                        1 if session.run_as_background_job else 0,
                        session.total_entries,
                        now,
                        now,
                    ),
                )
                session_id = cursor.lastrowid
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to create indexing session: {exc}") from exc
        created = await self.get_by_id(int(session_id or 0))
        if created is None:
            raise RepositoryError("Indexing session vanished after insert")
        return created

    async def get_by_id(self, session_id: int) -> IndexingSession | None:
        try:
            row = await self._db.fetch_one(
                "SELECT * FROM indexing_sessions WHERE id = ?", (session_id,)
            )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to load indexing session {session_id}: {exc}") from exc
        return _row_to_session(row) if row else None

    async def list_sessions(self, *, include_terminal: bool = False) -> list[IndexingSession]:
        where = "" if include_terminal else "WHERE status = 'active'"
        try:
            rows = await self._db.fetch_all(
                f"SELECT * FROM indexing_sessions {where} ORDER BY date_created DESC, id DESC"
            )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to list indexing sessions: {exc}") from exc
        return [_row_to_session(row) for row in rows]

    async def update_if_version(
        self,
        session: IndexingSession,
        expected_version: int,
        seen: Sequence[tuple[str, str]] = (),
    ) -> IndexingSession:
        """Write a step result if nobody else wrote since ``expected_version``.

        ``seen`` holds ``(volume_id, path)`` pairs observed by the step; they
        are stored in the same transaction as the cursor advance. Once every
        volume has been listed the missing set is final, so the session's seen
        paths are dropped instead.

        Raises:
            VersionConflictError: The stored version moved on, or the session
                became terminal in the meantime.
        """
        now = _now()
        try:
            async with self._db.transaction():
                cursor = await self._db.execute(
                    """UPDATE indexing_sessions
                       SET volume_index = ?, cursor = ?,
                           processed_entries = ?, total_entries = ?,
                           action_required = ?, status = ?,
                           skipped_entries = ?, missing_entries = ?,
                           date_updated = ?, version = version + 1
                       WHERE id = ? AND version = ? AND status = 'active'""",
                    (
                        session.volume_index,
                        session.cursor,
                        session.processed_entries,
                        session.total_entries,
                        1 if session.action_required else 0,
                        session.status.value,
                        _dump_list(session.skipped_entries),
                        _dump_list(session.missing_entries),
                        now,
                        session.id,
                        expected_version,
                    ),
                )
                if cursor.rowcount == 0:
                    raise VersionConflictError(session.id, expected_version)
                if session.listing_complete:
                    await self._clear_seen(session.id)
                elif seen:
                    await self._db.execute_many(
                        """INSERT OR IGNORE INTO indexing_seen (session_id, volume_id, path)
                           VALUES (?, ?, ?)""",
                        [(session.id, volume_id, path) for volume_id, path in seen],
                    )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to update indexing session {session.id}: {exc}") from exc
        return session.model_copy(update={"version": expected_version + 1, "date_updated": now})

    async def mark_terminal(
        self, session_id: int, status: SessionStatus
    ) -> IndexingSession | None:
        """Move an active session to a terminal status.

        Terminal sessions keep their first terminal status and their skipped
        and missing lists. Seen paths are no longer needed and are dropped.
        Returns the stored session, or None when it does not exist.
        """
        if status == SessionStatus.ACTIVE:
            msg = "mark_terminal requires a terminal status"
            raise ValueError(msg)
        try:
            async with self._db.transaction():
                cursor = await self._db.execute(
                    """UPDATE indexing_sessions
                       SET status = ?, date_updated = ?, version = version + 1
                       WHERE id = ? AND status = 'active'""",
                    (status.value, _now(), session_id),
                )
                if cursor.rowcount:
                    await self._clear_seen(session_id)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to terminate indexing session {session_id}: {exc}") from exc
        if cursor.rowcount:
            logger.info("Indexing session %s %s", session_id, status.value)
        return await self.get_by_id(session_id)

    async def _clear_seen(self, session_id: int) -> None:
        await self._db.execute("DELETE FROM indexing_seen WHERE session_id = ?", (session_id,))

    async def seen_paths(self, session_id: int) -> set[tuple[str, str]]:
        """Return every ``(volume_id, path)`` observed by the session so far."""
        try:
            rows = await self._db.fetch_all(
                "SELECT volume_id, path FROM indexing_seen WHERE session_id = ?",
                (session_id,),
            )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to load seen paths for {session_id}: {exc}") from exc
        return {(str(row["volume_id"]), str(row["path"])) for row in rows}
