"""Error taxonomy for indexing sessions.

The data layer raises the ``IndexingFailure`` subclasses below. Services catch
them and hand an ``IndexingError`` back inside ``result.Err``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ErrorKind(StrEnum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    CONFLICT = "conflict"
    VOLUME_ACCESS = "volume_access"
    REPOSITORY = "repository"


@dataclass(frozen=True, slots=True)
class IndexingError:
    """Error value returned by the indexing service."""

    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class IndexingFailure(Exception):
    """Base class for failures raised by indexing collaborators."""

    kind: ErrorKind = ErrorKind.REPOSITORY

    def to_error(self) -> IndexingError:
        return IndexingError(self.kind, str(self))


class VolumeAccessError(IndexingFailure):
    """The volume could not be listed."""

    kind = ErrorKind.VOLUME_ACCESS


class RepositoryError(IndexingFailure):
    """The record or session store failed."""

    kind = ErrorKind.REPOSITORY


class VersionConflictError(IndexingFailure):
    """The stored session version differs from the one the caller read."""

    kind = ErrorKind.CONFLICT

    def __init__(self, session_id: int, expected_version: int) -> None:
        super().__init__(
            f"Indexing session {session_id} changed since version {expected_version}"
        )
        self.session_id = session_id
        self.expected_version = expected_version
