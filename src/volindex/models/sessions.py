"""Indexing session models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from volindex.models.volumes import RecordKind


class SessionStatus(StrEnum):
    ACTIVE = "active"
    STOPPED = "stopped"
    FINISHED = "finished"


class SkipReason(StrEnum):
    """Why a listed entry could not be turned into a record."""

    INELIGIBLE_TYPE = "ineligible_type"
    ZERO_LENGTH = "zero_length"
    READ_ERROR = "read_error"
    NAMING_CONFLICT = "naming_conflict"


class SkipRecord(BaseModel):
    """A listed entry with no matching record that was not indexed."""

    path: str
    volume_id: str
    reason: SkipReason
    detail: str = ""


class MissingRecord(BaseModel):
    """A known record that no listing of its volume produced."""

    record_id: int
    path: str
    volume_id: str
    kind: RecordKind = RecordKind.FILE


class IndexingSession(BaseModel):
    """One bounded reconciliation run across one or more volumes."""

    id: int = 0
    indexed_volumes: list[str] = Field(default_factory=list)
    cache_remote_images: bool = False
    run_as_background_job: bool = False
    volume_index: int = 0
    cursor: int = 0
    processed_entries: int = 0
    total_entries: int = 0
    action_required: bool = False
    status: SessionStatus = SessionStatus.ACTIVE
    skipped_entries: list[SkipRecord] = Field(default_factory=list)
    missing_entries: list[MissingRecord] = Field(default_factory=list)
    date_created: str = ""
    date_updated: str = ""
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status != SessionStatus.ACTIVE

    @property
    def listing_complete(self) -> bool:
        return self.volume_index >= len(self.indexed_volumes)

    @property
    def current_volume(self) -> str | None:
        if self.listing_complete:
            return None
        return self.indexed_volumes[self.volume_index]

    @property
    def position(self) -> tuple[int, int]:
        """Cursor position, ordered across volumes."""
        return (self.volume_index, self.cursor)


class StepResult(BaseModel):
    """Outcome of one processing step.

    ``stop`` means the caller should stop polling: the session is gone,
    terminal, or was just auto-stopped because nothing needs review.
    ``skip_dialog`` is set when review was already pending before the step.
    """

    session_id: int
    stop: bool = False
    skip_dialog: bool = False
    session: IndexingSession | None = None


class ReviewData(BaseModel):
    """Accumulated anomalies of a session awaiting review."""

    session: IndexingSession
    skipped_entries: list[SkipRecord] = Field(default_factory=list)
    missing_entries: list[MissingRecord] = Field(default_factory=list)

    @property
    def missing_folder_ids(self) -> list[int]:
        return [m.record_id for m in self.missing_entries if m.kind == RecordKind.FOLDER]

    @property
    def missing_file_ids(self) -> list[int]:
        return [m.record_id for m in self.missing_entries if m.kind == RecordKind.FILE]


class FinalizeReport(BaseModel):
    """Result of applying deletions."""

    deleted: list[int] = Field(default_factory=list)
    already_absent: list[int] = Field(default_factory=list)
    cache_entries_invalidated: int = 0


class FinishReport(BaseModel):
    """Result of finishing a session."""

    session_id: int
    folders: FinalizeReport = Field(default_factory=FinalizeReport)
    files: FinalizeReport = Field(default_factory=FinalizeReport)
    rejected: list[int] = Field(default_factory=list)
