"""Apply operator-approved record deletions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from volindex.models.sessions import FinalizeReport

if TYPE_CHECKING:
    from collections.abc import Iterable

    from volindex.data.protocols import DerivedCacheProtocol, RecordRepositoryProtocol

logger = logging.getLogger(__name__)


class Finalizer:
    """Delete records, invalidating derived cache data first.

    A record that is already gone counts as a successful deletion.
    """

    def __init__(
        self, repository: RecordRepositoryProtocol, cache: DerivedCacheProtocol
    ) -> None:
        self._repository = repository
        self._cache = cache

    async def delete_folders(self, folder_ids: Iterable[int]) -> FinalizeReport:
        report = FinalizeReport()
        for folder_id in dict.fromkeys(folder_ids):
            file_ids = await self._repository.descendant_file_ids(folder_id)
            report.cache_entries_invalidated += await self._cache.invalidate(
                [folder_id, *file_ids]
            )
            self._tally(report, folder_id, await self._repository.delete_record(folder_id))
        return report

    async def delete_files(self, file_ids: Iterable[int]) -> FinalizeReport:
        report = FinalizeReport()
        for file_id in dict.fromkeys(file_ids):
            report.cache_entries_invalidated += await self._cache.invalidate([file_id])
            self._tally(report, file_id, await self._repository.delete_record(file_id))
        return report

    @staticmethod
    def _tally(report: FinalizeReport, record_id: int, deleted: bool) -> None:
        if deleted:
            report.deleted.append(record_id)
        else:
            logger.debug("Record %s was already deleted", record_id)
            report.already_absent.append(record_id)
