"""Protocol definitions for services."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from result import Result

from volindex.models.errors import IndexingError
from volindex.models.sessions import FinishReport, IndexingSession, ReviewData, StepResult


class IndexingServiceProtocol(Protocol):
    """Interface for indexing session operations exposed to callers."""

    async def start_session(
        self,
        volume_ids: Sequence[str],
        cache_remote_images: bool = False,
        as_queue_job: bool = False,
    ) -> Result[IndexingSession, IndexingError]: ...

    async def get_session(self, session_id: int) -> Result[IndexingSession, IndexingError]: ...

    async def list_sessions(
        self, include_terminal: bool = False
    ) -> Result[list[IndexingSession], IndexingError]: ...

    async def process_step(
        self,
        session_id: int,
        expected_version: int | None = None,
    ) -> Result[StepResult, IndexingError]: ...

    async def review_session(self, session_id: int) -> Result[ReviewData, IndexingError]: ...

    async def finish_session(
        self,
        session_id: int,
        folder_ids: Iterable[int] = (),
        asset_ids: Iterable[int] = (),
    ) -> Result[FinishReport, IndexingError]: ...

    async def stop_session(self, session_id: int) -> Result[int, IndexingError]: ...
