"""Protocol definitions for data access and indexing collaborators."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Protocol

from volindex.models.sessions import IndexingSession, SessionStatus
from volindex.models.volumes import ListingPage, Record, VolumeEntry


class VolumeListerProtocol(Protocol):
    """Paginated enumeration of the entries in a volume.

    Implementations must return the same page for the same cursor while the
    volume is unchanged, so a retried step sees the batch it failed on.
    Failures raise ``VolumeAccessError``.
    """

    def has_volume(self, volume_id: str) -> bool: ...

    async def list(self, volume_id: str, cursor: int, limit: int) -> ListingPage: ...


class RecordRepositoryProtocol(Protocol):
    """Lookup, creation and deletion of file and folder records.

    Failures raise ``RepositoryError``.
    """

    async def existing_records(self, volume_ids: Sequence[str]) -> Mapping[str, Record]: ...

    async def records_for_volumes(self, volume_ids: Sequence[str]) -> list[Record]: ...

    async def count_records(self, volume_ids: Sequence[str]) -> int: ...

    async def get_record(self, record_id: int) -> Record | None: ...

    async def create_record(self, volume_id: str, entry: VolumeEntry) -> Record: ...

    async def refresh_record(self, record_id: int, entry: VolumeEntry) -> None: ...

    async def delete_record(self, record_id: int) -> bool: ...

    async def descendant_file_ids(self, folder_id: int) -> list[int]: ...


class DerivedCacheProtocol(Protocol):
    """Derived data (transforms, thumbnails) that references records."""

    async def record(self, record_id: int, kind: str, location: str = "") -> None: ...

    async def invalidate(self, record_ids: Iterable[int]) -> int: ...


class SessionStoreProtocol(Protocol):
    """Persistence of indexing sessions with optimistic versioning."""

    async def create(self, session: IndexingSession) -> IndexingSession: ...

    async def get_by_id(self, session_id: int) -> IndexingSession | None: ...

    async def list_sessions(self, *, include_terminal: bool = False) -> list[IndexingSession]: ...

    async def update_if_version(
        self,
        session: IndexingSession,
        expected_version: int,
        seen: Sequence[tuple[str, str]] = (),
    ) -> IndexingSession: ...

    async def mark_terminal(
        self, session_id: int, status: SessionStatus
    ) -> IndexingSession | None: ...

    async def seen_paths(self, session_id: int) -> set[tuple[str, str]]: ...
