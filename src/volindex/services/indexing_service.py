"""Indexing service that drives reconciliation sessions step by step."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from volindex.models.errors import (
    ErrorKind,
    IndexingError,
    IndexingFailure,
    VolumeAccessError,
)
from volindex.models.sessions import (
    FinishReport,
    IndexingSession,
    MissingRecord,
    ReviewData,
    SessionStatus,
    StepResult,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from volindex.config import Config
    from volindex.data.finalizer import Finalizer
    from volindex.data.protocols import (
        RecordRepositoryProtocol,
        SessionStoreProtocol,
        VolumeListerProtocol,
    )
    from volindex.data.reconciler import Reconciler

logger = logging.getLogger(__name__)


class IndexingService:
    """Service owning the indexing session lifecycle.

    Every public method returns a ``Result``. Collaborator failures come back
    as ``Err`` and are never retried here; a failed step leaves the stored
    cursor where it was, so calling ``process_step`` again repeats it.
    """

    def __init__(
        self,
        store: SessionStoreProtocol,
        lister: VolumeListerProtocol,
        repository: RecordRepositoryProtocol,
        reconciler: Reconciler,
        finalizer: Finalizer,
        config: Config,
    ) -> None:
        self._store = store
        self._lister = lister
        self._repository = repository
        self._reconciler = reconciler
        self._finalizer = finalizer
        self._batch_size = max(config.batch_size, 1)

    async def start_session(
        self,
        volume_ids: Sequence[str],
        cache_remote_images: bool = False,
        as_queue_job: bool = False,
    ) -> Result[IndexingSession, IndexingError]:
        """Create a session positioned at the start of the first volume."""
        volumes = list(dict.fromkeys(v.strip() for v in volume_ids if v and v.strip()))
        if not volumes:
            return Err(IndexingError(ErrorKind.INVALID_INPUT, "No volumes specified"))
        unknown = [v for v in volumes if not self._lister.has_volume(v)]
        if unknown:
            return Err(
                IndexingError(ErrorKind.INVALID_INPUT, f"Unknown volumes: {', '.join(unknown)}")
            )

        try:
            total = await self._repository.count_records(volumes)
            session = await self._store.create(
                IndexingSession(
                    indexed_volumes=volumes,
                    cache_remote_images=cache_remote_images,
                    run_as_background_job=as_queue_job,
                    total_entries=total,
                )
            )
        except IndexingFailure as exc:
            return Err(exc.to_error())

        logger.info("Started indexing session %s for %s", session.id, ", ".join(volumes))
        return Ok(session)

    async def get_session(self, session_id: int) -> Result[IndexingSession, IndexingError]:
        try:
            session = await self._store.get_by_id(session_id)
        except IndexingFailure as exc:
            return Err(exc.to_error())
        if session is None:
            return Err(_not_found(session_id))
        return Ok(session)

    async def list_sessions(
        self, include_terminal: bool = False
    ) -> Result[list[IndexingSession], IndexingError]:
        """List sessions, newest first."""
        try:
            return Ok(await self._store.list_sessions(include_terminal=include_terminal))
        except IndexingFailure as exc:
            return Err(exc.to_error())

    async def process_step(
        self,
        session_id: int,
        expected_version: int | None = None,
    ) -> Result[StepResult, IndexingError]:
        """Advance a session by one listing page.

        A session that no longer exists or is already terminal yields a stop
        signal rather than an error: a parallel caller most likely finished it.

        Args:
            session_id: Session to advance.
            expected_version: Version the caller last read. A mismatch is
                reported as a conflict without doing any work.
        """
        try:
            session = await self._store.get_by_id(session_id)
        except IndexingFailure as exc:
            return Err(exc.to_error())

        if session is None or session.is_terminal:
            return Ok(StepResult(session_id=session_id, stop=True, session=session))
        if expected_version is not None and session.version != expected_version:
            return Err(
                IndexingError(
                    ErrorKind.CONFLICT,
                    f"Indexing session {session_id} is at version {session.version}, "
                    f"not {expected_version}",
                )
            )
        if session.action_required:
            return Ok(StepResult(session_id=session_id, skip_dialog=True, session=session))

        try:
            updated = await self._advance(session)
        except IndexingFailure as exc:
            logger.warning("Indexing session %s step failed: %s", session_id, exc)
            return Err(exc.to_error())

        if updated.status == SessionStatus.STOPPED:
            logger.info("Indexing session %s found nothing to review; stopped", session_id)
            return Ok(StepResult(session_id=session_id, stop=True, session=updated))
        return Ok(StepResult(session_id=session_id, session=updated))

    async def _advance(self, session: IndexingSession) -> IndexingSession:
        volume_id = session.current_volume
        if volume_id is None:
            msg = f"Indexing session {session.id} has no volume left to list"
            raise VolumeAccessError(msg)

        page = await self._lister.list(volume_id, session.cursor, self._batch_size)
        if not page.done and (page.next_cursor or 0) <= session.cursor:
            msg = f"Listing of {volume_id} did not advance past cursor {session.cursor}"
            raise VolumeAccessError(msg)

        existing = await self._repository.existing_records([volume_id])
        outcome = await self._reconciler.reconcile(
            volume_id,
            page.entries,
            existing,
            cache_remote_images=session.cache_remote_images,
        )

        processed = session.processed_entries + len(page.entries)
        update: dict[str, object] = {
            "processed_entries": processed,
            "total_entries": max(session.total_entries, processed),
            "skipped_entries": [*session.skipped_entries, *outcome.skipped],
        }
        if page.done:
            update["volume_index"] = session.volume_index + 1
            update["cursor"] = 0
        else:
            update["cursor"] = page.next_cursor
        candidate = session.model_copy(update=update)

        seen = [(volume_id, path) for path in outcome.seen_paths]
        if candidate.listing_complete:
            missing = await self._missing_records(candidate, seen)
            candidate = candidate.model_copy(
                update={
                    "missing_entries": [*candidate.missing_entries, *missing],
                    "action_required": True,
                    "total_entries": processed,
                }
            )
            if not candidate.skipped_entries and not candidate.missing_entries:
                candidate = candidate.model_copy(update={"status": SessionStatus.STOPPED})

        return await self._store.update_if_version(candidate, session.version, seen)

    async def _missing_records(
        self, session: IndexingSession, seen_now: Iterable[tuple[str, str]]
    ) -> list[MissingRecord]:
        """Records of the session's volumes that no listing page produced."""
        seen = await self._store.seen_paths(session.id)
        seen.update(seen_now)
        records = await self._repository.records_for_volumes(session.indexed_volumes)
        return [
            MissingRecord(
                record_id=record.id,
                path=record.path,
                volume_id=record.volume_id,
                kind=record.kind,
            )
            for record in records
            if (record.volume_id, record.path) not in seen
        ]

    async def review_session(self, session_id: int) -> Result[ReviewData, IndexingError]:
        """Return the skipped and missing entries of a session awaiting review."""
        try:
            session = await self._store.get_by_id(session_id)
        except IndexingFailure as exc:
            return Err(exc.to_error())
        if session is None:
            return Err(_not_found(session_id))
        if not session.action_required:
            return Err(
                IndexingError(
                    ErrorKind.INVALID_STATE,
                    f"Indexing session {session_id} has nothing to review",
                )
            )
        return Ok(
            ReviewData(
                session=session,
                skipped_entries=session.skipped_entries,
                missing_entries=session.missing_entries,
            )
        )

    async def finish_session(
        self,
        session_id: int,
        folder_ids: Iterable[int] = (),
        asset_ids: Iterable[int] = (),
    ) -> Result[FinishReport, IndexingError]:
        """Terminate a session and delete the approved missing records.

        Only ids the session reported as missing are deleted. Repeating the
        call with the same ids succeeds and deletes nothing further.
        """
        folder_ids = list(folder_ids)
        asset_ids = list(asset_ids)
        try:
            session = await self._store.get_by_id(session_id)
            if session is None:
                return Err(_not_found(session_id))
            if not session.is_terminal:
                session = await self._store.mark_terminal(session_id, SessionStatus.FINISHED)
                if session is None:
                    return Err(_not_found(session_id))

            approved = {m.record_id for m in session.missing_entries}
            rejected = [i for i in (*folder_ids, *asset_ids) if i not in approved]
            if rejected:
                logger.warning(
                    "Ignoring %d deletions not reported missing by session %s: %s",
                    len(rejected),
                    session_id,
                    rejected,
                )
            folders = await self._finalizer.delete_folders(i for i in folder_ids if i in approved)
            files = await self._finalizer.delete_files(i for i in asset_ids if i in approved)
        except IndexingFailure as exc:
            return Err(exc.to_error())

        logger.info(
            "Finished indexing session %s: %d folders, %d files deleted",
            session_id,
            len(folders.deleted),
            len(files.deleted),
        )
        return Ok(FinishReport(session_id=session_id, folders=folders, files=files, rejected=rejected))

    async def stop_session(self, session_id: int) -> Result[int, IndexingError]:
        """Terminate a session without cleanup. Recorded anomalies are kept."""
        try:
            session = await self._store.mark_terminal(session_id, SessionStatus.STOPPED)
        except IndexingFailure as exc:
            return Err(exc.to_error())
        if session is None:
            logger.debug("Stop requested for unknown indexing session %s", session_id)
        return Ok(session_id)


def _not_found(session_id: int) -> IndexingError:
    return IndexingError(ErrorKind.NOT_FOUND, f"Indexing session {session_id} not found")
