"""Volume listers that enumerate entries page by page."""

from __future__ import annotations

import asyncio
import logging
import os
from itertools import islice
from pathlib import Path
from typing import TYPE_CHECKING

from volindex.models.errors import VolumeAccessError
from volindex.models.volumes import EntryKind, ListingPage, VolumeEntry

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

logger = logging.getLogger(__name__)


class LocalVolumeLister:
    """List volumes that are directories on the local filesystem.

    Entries are produced depth-first in name order, folders before their
    contents, with paths relative to the volume root. A cursor is the number
    of entries already consumed, so the same cursor yields the same page only
    while the tree is left unchanged between steps.
    """

    def __init__(self, roots: Mapping[str, Path], *, skip_hidden: bool = True) -> None:
        self._roots = {volume_id: Path(root) for volume_id, root in roots.items()}
        self._skip_hidden = skip_hidden

    def has_volume(self, volume_id: str) -> bool:
        return volume_id in self._roots

    async def list(self, volume_id: str, cursor: int, limit: int) -> ListingPage:
        root = self._roots.get(volume_id)
        if root is None:
            raise VolumeAccessError(f"Unknown volume {volume_id!r}")
        return await asyncio.to_thread(self._list_page, root, cursor, limit)

    def _list_page(self, root: Path, cursor: int, limit: int) -> ListingPage:
        if not root.is_dir():
            raise VolumeAccessError(f"Volume root {root} is not a readable directory")
        try:
            children = self._children(root)
            window = [
                _entry(rel_path, child, error)
                for rel_path, child, error in islice(
                    self._walk(root, children), cursor, cursor + limit + 1
                )
            ]
        except OSError as exc:
            raise VolumeAccessError(f"Failed to list {root}: {exc}") from exc
        entries = window[:limit]
        next_cursor = cursor + len(entries) if len(window) > limit else None
        return ListingPage(entries=entries, next_cursor=next_cursor)

    def _children(self, directory: Path | str) -> list[os.DirEntry[str]]:
        with os.scandir(directory) as it:
            children = [
                e for e in it if not (self._skip_hidden and e.name.startswith("."))
            ]
        return sorted(children, key=lambda e: e.name)

    def _walk(
        self, root: Path, children: list[os.DirEntry[str]]
    ) -> Iterator[tuple[str, os.DirEntry[str], str | None]]:
        """Yield ``(relative path, dir entry, read error)`` in listing order.

        Only directories are opened here; entries are stat'ed by ``_entry``
        once they fall inside the requested page.
        """
        for child in children:
            rel_path = Path(child.path).relative_to(root).as_posix()
            if not child.is_dir(follow_symlinks=False):
                yield rel_path, child, None
                continue
            try:
                grandchildren = self._children(child.path)
            except PermissionError as exc:
                # Contents unknown: the read error keeps the records beneath it.
                logger.warning("Cannot read folder %s: %s", child.path, exc)
                yield rel_path, child, str(exc)
                continue
            yield rel_path, child, None
            yield from self._walk(root, grandchildren)


def _entry(rel_path: str, child: os.DirEntry[str], error: str | None) -> VolumeEntry:
    if child.is_dir(follow_symlinks=False):
        if error is not None:
            return VolumeEntry(path=rel_path, kind=EntryKind.FOLDER, error=error)
        try:
            mtime = int(child.stat(follow_symlinks=False).st_mtime)
        except OSError as exc:
            return VolumeEntry(path=rel_path, kind=EntryKind.FOLDER, error=str(exc))
        return VolumeEntry(path=rel_path, kind=EntryKind.FOLDER, mtime=mtime)
    if child.is_file(follow_symlinks=False):
        return _file_entry(child, rel_path)
    return VolumeEntry(path=rel_path, kind=EntryKind.OTHER)


def _file_entry(child: os.DirEntry[str], rel_path: str) -> VolumeEntry:
    try:
        stat = child.stat(follow_symlinks=False)
    except OSError as exc:
        return VolumeEntry(path=rel_path, kind=EntryKind.FILE, error=str(exc))
    if not os.access(child.path, os.R_OK):
        return VolumeEntry(
            path=rel_path,
            kind=EntryKind.FILE,
            size=stat.st_size,
            mtime=int(stat.st_mtime),
            error="Permission denied",
        )
    return VolumeEntry(
        path=rel_path,
        kind=EntryKind.FILE,
        size=stat.st_size,
        mtime=int(stat.st_mtime),
    )
