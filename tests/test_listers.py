"""Tests for the local filesystem volume lister."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from volindex.data import listers
from volindex.data.listers import LocalVolumeLister
from volindex.models.errors import VolumeAccessError
from volindex.models.volumes import EntryKind, VolumeEntry


@pytest.fixture
def volume_root(tmp_path: Path) -> Path:
    root = tmp_path / "volume"
    (root / "photos" / "2024").mkdir(parents=True)
    (root / "photos" / "2024" / "beach.jpg").write_bytes(b"jpeg")
    (root / "photos" / "cover.png").write_bytes(b"png!")
    (root / "a.pdf").write_bytes(b"%PDF")
    (root / "empty.jpg").write_bytes(b"")
    (root / ".DS_Store").write_bytes(b"junk")
    (root / ".hidden").mkdir()
    (root / ".hidden" / "secret.jpg").write_bytes(b"x")
    return root


EXPECTED_ORDER = [
    "a.pdf",
    "empty.jpg",
    "photos",
    "photos/2024",
    "photos/2024/beach.jpg",
    "photos/cover.png",
]


class TestLocalVolumeLister:
    @pytest.mark.asyncio
    async def test_full_listing_is_depth_first_and_skips_hidden(self, volume_root: Path) -> None:
        lister = LocalVolumeLister({"v1": volume_root})
        page = await lister.list("v1", 0, 100)
        assert page.done
        assert [e.path for e in page.entries] == EXPECTED_ORDER

        by_path = {e.path: e for e in page.entries}
        assert by_path["photos"].kind == EntryKind.FOLDER
        assert by_path["a.pdf"].size == 4
        assert by_path["empty.jpg"].size == 0
        assert by_path["a.pdf"].error is None

    @pytest.mark.asyncio
    async def test_hidden_entries_listed_when_enabled(self, volume_root: Path) -> None:
        lister = LocalVolumeLister({"v1": volume_root}, skip_hidden=False)
        page = await lister.list("v1", 0, 100)
        paths = [e.path for e in page.entries]
        assert ".DS_Store" in paths
        assert ".hidden/secret.jpg" in paths

    @pytest.mark.asyncio
    async def test_pages_concatenate_to_full_listing(self, volume_root: Path) -> None:
        lister = LocalVolumeLister({"v1": volume_root})
        cursor: int | None = 0
        seen: list[str] = []
        pages = 0
        while cursor is not None:
            page = await lister.list("v1", cursor, 4)
            seen.extend(e.path for e in page.entries)
            cursor = page.next_cursor
            pages += 1
        assert seen == EXPECTED_ORDER
        assert pages == 2

    @pytest.mark.asyncio
    async def test_exact_page_boundary_reports_done(self, volume_root: Path) -> None:
        lister = LocalVolumeLister({"v1": volume_root})
        page = await lister.list("v1", 0, len(EXPECTED_ORDER))
        assert page.done
        assert len(page.entries) == len(EXPECTED_ORDER)

    @pytest.mark.asyncio
    async def test_same_cursor_same_page(self, volume_root: Path) -> None:
        lister = LocalVolumeLister({"v1": volume_root})
        first = await lister.list("v1", 2, 3)
        second = await lister.list("v1", 2, 3)
        assert first == second
        assert first.next_cursor == 5

    @pytest.mark.asyncio
    async def test_unknown_volume(self, volume_root: Path) -> None:
        lister = LocalVolumeLister({"v1": volume_root})
        assert not lister.has_volume("nope")
        with pytest.raises(VolumeAccessError):
            await lister.list("nope", 0, 10)

    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path: Path) -> None:
        lister = LocalVolumeLister({"gone": tmp_path / "does-not-exist"})
        assert lister.has_volume("gone")
        with pytest.raises(VolumeAccessError):
            await lister.list("gone", 0, 10)

    @pytest.mark.asyncio
    async def test_only_entries_in_page_window_are_stated(
        self, volume_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        stated: list[str] = []

        def counting_entry(rel_path: str, child: os.DirEntry[str], error: str | None) -> VolumeEntry:
            stated.append(rel_path)
            return real_entry(rel_path, child, error)

        real_entry = listers._entry
        monkeypatch.setattr(listers, "_entry", counting_entry)
        lister = LocalVolumeLister({"v1": volume_root})

        await lister.list("v1", 4, 2)
        assert stated == ["photos/2024/beach.jpg", "photos/cover.png"]

        stated.clear()
        await lister.list("v1", 0, 2)
        assert stated == EXPECTED_ORDER[:3]

    @pytest.mark.asyncio
    async def test_unreadable_folder_is_listed_with_error_and_not_descended(
        self, volume_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        real_children = LocalVolumeLister._children

        def children(self: LocalVolumeLister, directory: Path | str) -> list[os.DirEntry[str]]:
            if Path(directory).name == "photos":
                raise PermissionError(13, "Permission denied", str(directory))
            return real_children(self, directory)

        monkeypatch.setattr(LocalVolumeLister, "_children", children)
        lister = LocalVolumeLister({"v1": volume_root})
        page = await lister.list("v1", 0, 100)

        assert [e.path for e in page.entries] == ["a.pdf", "empty.jpg", "photos"]
        photos = page.entries[-1]
        assert photos.kind == EntryKind.FOLDER
        assert photos.error is not None
        assert "Permission denied" in photos.error
