"""Volume listing and record models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import PurePosixPath

from pydantic import BaseModel


class EntryKind(StrEnum):
    """Kind of an entry produced by a volume listing."""

    FILE = "file"
    FOLDER = "folder"
    OTHER = "other"


class RecordKind(StrEnum):
    """Kind of a stored metadata record."""

    FILE = "file"
    FOLDER = "folder"


@dataclass(frozen=True, slots=True)
class VolumeEntry:
    """One entry of a volume listing. Never persisted beyond reconciliation."""

    path: str
    kind: EntryKind = EntryKind.FILE
    size: int = 0
    mtime: int = 0
    error: str | None = None

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lstrip(".").lower()


@dataclass(frozen=True, slots=True)
class ListingPage:
    """A bounded page of entries. ``next_cursor`` is None once the volume is exhausted."""

    entries: list[VolumeEntry] = field(default_factory=list)
    next_cursor: int | None = None

    @property
    def done(self) -> bool:
        return self.next_cursor is None


@dataclass(frozen=True, slots=True)
class Record:
    """An existing file or folder metadata record."""

    id: int
    volume_id: str
    path: str
    kind: RecordKind
    size: int = 0
    mtime: int = 0


class VolumeInfo(BaseModel):
    """A registered volume and the root it is listed from."""

    volume_id: str
    root_path: str
    name: str = ""
