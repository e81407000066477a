"""Repository layer for SQL persistence of volumes and records."""

from __future__ import annotations

import logging
import sqlite3
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from volindex.models.errors import RepositoryError
from volindex.models.volumes import EntryKind, Record, RecordKind, VolumeInfo

if TYPE_CHECKING:
    from collections.abc import Sequence

    from aiosqlite import Row

    from volindex.data.db import Database
    from volindex.models.volumes import VolumeEntry

logger = logging.getLogger(__name__)


def _placeholders(values: Sequence[object]) -> str:
    return ",".join("?" for _ in values)


def _row_to_record(row: Row) -> Record:
    return Record(
        id=int(row["id"]),
        volume_id=str(row["volume_id"]),
        path=str(row["path"]),
        kind=RecordKind(row["kind"]),
        size=int(row["size"] or 0),
        mtime=int(row["mtime"] or 0),
    )


class RecordRepository:
    """SQL repository for file and folder metadata records."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def existing_records(self, volume_ids: Sequence[str]) -> dict[str, Record]:
        """Return records of the given volumes keyed by path.

        Paths are only unique within a volume, so callers pass one volume
        when they need an unambiguous view.
        """
        return {record.path: record for record in await self.records_for_volumes(volume_ids)}

    async def records_for_volumes(self, volume_ids: Sequence[str]) -> list[Record]:
        if not volume_ids:
            return []
        try:
            rows = await self._db.fetch_all(
                f"""SELECT * FROM records
                    WHERE volume_id IN ({_placeholders(volume_ids)})
                    ORDER BY volume_id, path""",
                tuple(volume_ids),
            )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to load records: {exc}") from exc
        return [_row_to_record(row) for row in rows]

    async def count_records(self, volume_ids: Sequence[str]) -> int:
        if not volume_ids:
            return 0
        try:
            row = await self._db.fetch_one(
                f"SELECT COUNT(*) as cnt FROM records WHERE volume_id IN ({_placeholders(volume_ids)})",
                tuple(volume_ids),
            )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to count records: {exc}") from exc
        return int(row["cnt"]) if row else 0

    async def get_record(self, record_id: int) -> Record | None:
        try:
            row = await self._db.fetch_one("SELECT * FROM records WHERE id = ?", (record_id,))
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to load record {record_id}: {exc}") from exc
        return _row_to_record(row) if row else None

    async def create_record(self, volume_id: str, entry: VolumeEntry) -> Record:
        """Insert a record for a listed entry.

        Inserting a path that already exists returns the stored record, so a
        step replayed after a lost version race does not duplicate records.
        """
        kind = RecordKind.FOLDER if entry.kind == EntryKind.FOLDER else RecordKind.FILE
        now = datetime.now(UTC).isoformat()
        try:
            async with self._db.transaction():
                await self._db.execute(
                    """INSERT OR IGNORE INTO records
                    (volume_id, path, kind, size, mtime, date_indexed)
                    VALUES (?, ?, ?, ?, ?, ?)""",
                    (volume_id, entry.path, kind.value, entry.size, entry.mtime, now),
                )
                row = await self._db.fetch_one(
                    "SELECT * FROM records WHERE volume_id = ? AND path = ?",
                    (volume_id, entry.path),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to create record for {entry.path}: {exc}") from exc
        if row is None:
            raise RepositoryError(f"Record for {entry.path} vanished after insert")
        return _row_to_record(row)

    async def refresh_record(self, record_id: int, entry: VolumeEntry) -> None:
        """Update stored size and modification time from a listed entry."""
        now = datetime.now(UTC).isoformat()
        try:
            async with self._db.transaction():
                await self._db.execute(
                    "UPDATE records SET size = ?, mtime = ?, date_indexed = ? WHERE id = ?",
                    (entry.size, entry.mtime, now, record_id),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to refresh record {record_id}: {exc}") from exc

    async def delete_record(self, record_id: int) -> bool:
        """Delete a record and, for folders, every record beneath it.

        Returns False when the record was already gone.
        """
        try:
            async with self._db.transaction():
                row = await self._db.fetch_one(
                    "SELECT * FROM records WHERE id = ?", (record_id,)
                )
                if row is None:
                    return False
                record = _row_to_record(row)
                if record.kind == RecordKind.FOLDER:
                    await self._db.execute(
                        "DELETE FROM records WHERE volume_id = ? AND path LIKE ? ESCAPE '\\'",
                        (record.volume_id, _subtree_pattern(record.path)),
                    )
                await self._db.execute("DELETE FROM records WHERE id = ?", (record_id,))
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to delete record {record_id}: {exc}") from exc
        return True

    async def descendant_file_ids(self, folder_id: int) -> list[int]:
        """Return ids of file records located beneath a folder record."""
        folder = await self.get_record(folder_id)
        if folder is None or folder.kind != RecordKind.FOLDER:
            return []
        try:
            rows = await self._db.fetch_all(
                """SELECT id FROM records
                   WHERE volume_id = ? AND kind = 'file' AND path LIKE ? ESCAPE '\\'
                   ORDER BY path""",
                (folder.volume_id, _subtree_pattern(folder.path)),
            )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to list files under folder {folder_id}: {exc}") from exc
        return [int(row["id"]) for row in rows]


def _subtree_pattern(folder_path: str) -> str:
    escaped = folder_path.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}/%"


class VolumeRepository:
    """SQL repository for registered volumes."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def add_volume(self, volume_id: str, root_path: str, name: str = "") -> VolumeInfo:
        async with self._db.transaction():
            await self._db.execute(
                """INSERT INTO volumes (volume_id, root_path, name)
                   VALUES (?, ?, ?)
                   ON CONFLICT(volume_id) DO UPDATE SET
                       root_path = excluded.root_path,
                       name = excluded.name""",
                (volume_id, root_path, name),
            )
        logger.info("Registered volume %s at %s", volume_id, root_path)
        return VolumeInfo(volume_id=volume_id, root_path=root_path, name=name)

    async def remove_volume(self, volume_id: str) -> bool:
        async with self._db.transaction():
            cursor = await self._db.execute(
                "DELETE FROM volumes WHERE volume_id = ?", (volume_id,)
            )
        return cursor.rowcount > 0

    async def get_volume(self, volume_id: str) -> VolumeInfo | None:
        row = await self._db.fetch_one("SELECT * FROM volumes WHERE volume_id = ?", (volume_id,))
        if row is None:
            return None
        return VolumeInfo(
            volume_id=row["volume_id"], root_path=row["root_path"], name=row["name"] or ""
        )

    async def list_volumes(self) -> list[VolumeInfo]:
        rows = await self._db.fetch_all("SELECT * FROM volumes ORDER BY volume_id")
        return [
            VolumeInfo(volume_id=row["volume_id"], root_path=row["root_path"], name=row["name"] or "")
            for row in rows
        ]
