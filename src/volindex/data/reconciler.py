"""Reconcile one page of listed entries against existing records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from volindex.models.indexing import ReconcileResult
from volindex.models.sessions import SkipReason, SkipRecord
from volindex.models.volumes import EntryKind, RecordKind

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from volindex.config import Config
    from volindex.data.protocols import DerivedCacheProtocol, RecordRepositoryProtocol
    from volindex.models.volumes import Record, VolumeEntry

logger = logging.getLogger(__name__)

IMAGE_CACHE_KIND = "image"


@dataclass(frozen=True)
class EligibilityRules:
    """Which unmatched entries may become new records."""

    allowed_extensions: frozenset[str]
    image_extensions: frozenset[str] = frozenset()

    @classmethod
    def from_config(cls, config: Config) -> EligibilityRules:
        return cls(
            allowed_extensions=frozenset(e.lower() for e in config.allowed_extensions),
            image_extensions=frozenset(e.lower() for e in config.image_extensions),
        )

    def skip_reason(self, entry: VolumeEntry) -> tuple[SkipReason, str] | None:
        """Return why an entry cannot be indexed, or None when it can."""
        if entry.kind == EntryKind.OTHER:
            return SkipReason.INELIGIBLE_TYPE, "Unsupported entry kind"
        if entry.kind == EntryKind.FOLDER:
            return None
        if entry.extension not in self.allowed_extensions:
            ext = entry.extension or "(none)"
            return SkipReason.INELIGIBLE_TYPE, f"File extension {ext} is not allowed"
        if entry.size == 0:
            return SkipReason.ZERO_LENGTH, "File is empty"
        return None

    def is_image(self, entry: VolumeEntry) -> bool:
        return entry.kind == EntryKind.FILE and entry.extension in self.image_extensions


class Reconciler:
    """Match listed entries to records, creating or skipping the unmatched ones.

    Only the paths it reports as seen are protected from the missing check the
    engine runs once every volume of a session has been listed in full. An
    entry that could not be read still protects the record at its path and,
    for a folder, every record beneath it.

    With ``cache_remote_images`` set, image records are registered in the
    derived cache so their cached copies are dropped when the record goes.
    """

    def __init__(
        self,
        repository: RecordRepositoryProtocol,
        rules: EligibilityRules,
        cache: DerivedCacheProtocol | None = None,
    ) -> None:
        self._repository = repository
        self._rules = rules
        self._cache = cache

    async def reconcile(
        self,
        volume_id: str,
        entries: Sequence[VolumeEntry],
        existing: Mapping[str, Record],
        *,
        cache_remote_images: bool = False,
    ) -> ReconcileResult:
        result = ReconcileResult()
        folded_existing = {path.casefold(): path for path in existing}
        folded_batch: dict[str, str] = {}

        for entry in entries:
            if entry.error:
                result.skipped.append(
                    _skip(volume_id, entry, SkipReason.READ_ERROR, entry.error)
                )
                result.seen_paths.extend(_unlisted_paths(entry, existing))
                continue

            folded = entry.path.casefold()
            record = existing.get(entry.path)
            if record is not None and _kind_matches(record, entry):
                result.matched += 1
                result.seen_paths.append(entry.path)
                folded_batch[folded] = entry.path
                if _needs_refresh(record, entry):
                    await self._repository.refresh_record(record.id, entry)
                    result.refreshed += 1
                if cache_remote_images:
                    await self._cache_image(volume_id, record.id, entry, result)
                continue

            clash = folded_batch.get(folded) or folded_existing.get(folded)
            if clash is not None:
                result.skipped.append(
                    _skip(
                        volume_id,
                        entry,
                        SkipReason.NAMING_CONFLICT,
                        f"Conflicts with existing path {clash}",
                    )
                )
                continue

            reason = self._rules.skip_reason(entry)
            if reason is not None:
                result.skipped.append(_skip(volume_id, entry, *reason))
                continue

            created = await self._repository.create_record(volume_id, entry)
            result.created += 1
            if cache_remote_images:
                await self._cache_image(volume_id, created.id, entry, result)
            result.seen_paths.append(entry.path)
            folded_batch[folded] = entry.path

        if result.skipped:
            logger.debug("Skipped %d entries in volume %s", len(result.skipped), volume_id)
        return result

    async def _cache_image(
        self, volume_id: str, record_id: int, entry: VolumeEntry, result: ReconcileResult
    ) -> None:
        if self._cache is None or not self._rules.is_image(entry):
            return
        await self._cache.record(record_id, IMAGE_CACHE_KIND, f"{volume_id}/{entry.path}")
        result.cached += 1


def _needs_refresh(record: Record, entry: VolumeEntry) -> bool:
    if record.kind == RecordKind.FOLDER:
        return False
    return (record.size, record.mtime) != (entry.size, entry.mtime)


def _unlisted_paths(entry: VolumeEntry, existing: Mapping[str, Record]) -> list[str]:
    paths = [entry.path] if entry.path in existing else []
    if entry.kind == EntryKind.FOLDER:
        prefix = f"{entry.path}/"
        paths.extend(path for path in existing if path.startswith(prefix))
    return paths


def _kind_matches(record: Record, entry: VolumeEntry) -> bool:
    if record.kind == RecordKind.FOLDER:
        return entry.kind == EntryKind.FOLDER
    return entry.kind == EntryKind.FILE


def _skip(volume_id: str, entry: VolumeEntry, reason: SkipReason, detail: str) -> SkipRecord:
    return SkipRecord(path=entry.path, volume_id=volume_id, reason=reason, detail=detail)
