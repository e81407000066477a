"""Pydantic models for volindex."""

from volindex.models.errors import (
    ErrorKind,
    IndexingError,
    IndexingFailure,
    RepositoryError,
    VersionConflictError,
    VolumeAccessError,
)
from volindex.models.indexing import ReconcileResult
from volindex.models.sessions import (
    FinalizeReport,
    FinishReport,
    IndexingSession,
    MissingRecord,
    ReviewData,
    SessionStatus,
    SkipReason,
    SkipRecord,
    StepResult,
)
from volindex.models.volumes import (
    EntryKind,
    ListingPage,
    Record,
    RecordKind,
    VolumeEntry,
    VolumeInfo,
)

__all__ = [
    "EntryKind",
    "ErrorKind",
    "FinalizeReport",
    "FinishReport",
    "IndexingError",
    "IndexingFailure",
    "IndexingSession",
    "ListingPage",
    "MissingRecord",
    "ReconcileResult",
    "Record",
    "RecordKind",
    "RepositoryError",
    "ReviewData",
    "SessionStatus",
    "SkipReason",
    "SkipRecord",
    "StepResult",
    "VersionConflictError",
    "VolumeAccessError",
    "VolumeEntry",
    "VolumeInfo",
]
