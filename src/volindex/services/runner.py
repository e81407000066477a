"""Caller-side drivers that advance a session until it needs review or stops."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeAlias

from result import Err, Ok, Result

from volindex.models.errors import ErrorKind, IndexingError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from volindex.models.sessions import IndexingSession, StepResult
    from volindex.services.protocols import IndexingServiceProtocol

logger = logging.getLogger(__name__)

ProgressCallback: TypeAlias = "Callable[[int, int, str], None]"
StepOutcome: TypeAlias = "Result[StepResult, IndexingError]"
StepDispatcher: TypeAlias = "Callable[[Awaitable[StepOutcome]], Awaitable[StepOutcome]]"


async def _inline(step: Awaitable[StepOutcome]) -> StepOutcome:
    return await step


async def _as_task(step: Awaitable[StepOutcome]) -> StepOutcome:
    return await asyncio.create_task(_inline(step))


async def _drive(
    service: IndexingServiceProtocol,
    session_id: int,
    dispatch: StepDispatcher,
    *,
    max_conflict_retries: int,
    progress_callback: ProgressCallback | None,
) -> StepOutcome:
    conflicts = 0
    while True:
        result = await dispatch(service.process_step(session_id))
        if isinstance(result, Err):
            # Conflicts mean another caller advanced the session: step again.
            if result.err_value.kind == ErrorKind.CONFLICT and conflicts < max_conflict_retries:
                conflicts += 1
                logger.debug("Conflict on session %s, retrying (%d)", session_id, conflicts)
                continue
            return result

        conflicts = 0
        step = result.ok_value
        session = step.session
        if progress_callback and session is not None:
            progress_callback(
                session.processed_entries,
                session.total_entries,
                f"Volume {min(session.volume_index + 1, len(session.indexed_volumes))}"
                f"/{len(session.indexed_volumes)}",
            )
        if step.stop or session is None or session.action_required:
            return Ok(step)


async def run_to_review(
    service: IndexingServiceProtocol,
    session_id: int,
    *,
    max_conflict_retries: int = 3,
    progress_callback: ProgressCallback | None = None,
) -> StepOutcome:
    """Poll ``process_step`` until the session stops or awaits review."""
    return await _drive(
        service,
        session_id,
        _inline,
        max_conflict_retries=max_conflict_retries,
        progress_callback=progress_callback,
    )


async def run_as_tasks(
    service: IndexingServiceProtocol,
    session_id: int,
    *,
    max_conflict_retries: int = 3,
    progress_callback: ProgressCallback | None = None,
) -> StepOutcome:
    """Dispatch every step as its own asyncio task until the session settles."""
    return await _drive(
        service,
        session_id,
        _as_task,
        max_conflict_retries=max_conflict_retries,
        progress_callback=progress_callback,
    )


async def drive_session(
    service: IndexingServiceProtocol,
    session: IndexingSession,
    *,
    progress_callback: ProgressCallback | None = None,
) -> StepOutcome:
    """Drive a session with the dispatch model it was started with."""
    runner = run_as_tasks if session.run_as_background_job else run_to_review
    return await runner(service, session.id, progress_callback=progress_callback)
