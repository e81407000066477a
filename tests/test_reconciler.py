"""Tests for batch reconciliation and eligibility rules."""

from __future__ import annotations

import pytest
from conftest import file_entry, folder_entry

from volindex.config import Config
from volindex.data.derived_cache import DerivedCache
from volindex.data.reconciler import EligibilityRules, Reconciler
from volindex.data.repositories import RecordRepository
from volindex.models.sessions import SkipReason
from volindex.models.volumes import EntryKind, VolumeEntry


@pytest.fixture
def rules(test_config: Config) -> EligibilityRules:
    return EligibilityRules.from_config(test_config)


class TestEligibilityRules:
    def test_allowed_file(self, rules: EligibilityRules) -> None:
        assert rules.skip_reason(file_entry("photo.JPG")) is None

    def test_folder_always_eligible(self, rules: EligibilityRules) -> None:
        assert rules.skip_reason(folder_entry("any.name")) is None

    def test_disallowed_extension(self, rules: EligibilityRules) -> None:
        reason = rules.skip_reason(file_entry("notes.txt"))
        assert reason is not None
        assert reason[0] == SkipReason.INELIGIBLE_TYPE

    def test_missing_extension(self, rules: EligibilityRules) -> None:
        reason = rules.skip_reason(file_entry("Makefile"))
        assert reason is not None
        assert "(none)" in reason[1]

    def test_zero_length(self, rules: EligibilityRules) -> None:
        reason = rules.skip_reason(file_entry("empty.png", size=0))
        assert reason is not None
        assert reason[0] == SkipReason.ZERO_LENGTH

    def test_other_kind(self, rules: EligibilityRules) -> None:
        reason = rules.skip_reason(VolumeEntry(path="socket", kind=EntryKind.OTHER))
        assert reason is not None
        assert reason[0] == SkipReason.INELIGIBLE_TYPE

    def test_is_image(self, rules: EligibilityRules) -> None:
        assert rules.is_image(file_entry("a.png"))
        assert not rules.is_image(file_entry("a.pdf"))


class TestReconciler:
    @pytest.mark.asyncio
    async def test_matches_creates_and_skips(
        self, records: RecordRepository, rules: EligibilityRules
    ) -> None:
        await records.create_record("v1", file_entry("a.jpg"))
        reconciler = Reconciler(records, rules)
        existing = await records.existing_records(["v1"])

        result = await reconciler.reconcile(
            "v1",
            [file_entry("a.jpg"), file_entry("b.txt"), file_entry("new.png")],
            existing,
        )
        assert result.matched == 1
        assert result.created == 1
        assert result.seen_paths == ["a.jpg", "new.png"]
        assert [(s.path, s.reason) for s in result.skipped] == [
            ("b.txt", SkipReason.INELIGIBLE_TYPE)
        ]
        assert "new.png" in await records.existing_records(["v1"])

    @pytest.mark.asyncio
    async def test_read_error_is_skipped(
        self, records: RecordRepository, rules: EligibilityRules
    ) -> None:
        reconciler = Reconciler(records, rules)
        entry = VolumeEntry(path="locked.jpg", size=5, error="Permission denied")
        result = await reconciler.reconcile("v1", [entry], {})
        assert result.skipped[0].reason == SkipReason.READ_ERROR
        assert result.skipped[0].detail == "Permission denied"
        assert result.seen_paths == []

    @pytest.mark.asyncio
    async def test_case_collisions_are_naming_conflicts(
        self, records: RecordRepository, rules: EligibilityRules
    ) -> None:
        await records.create_record("v1", file_entry("Photo.jpg"))
        reconciler = Reconciler(records, rules)
        existing = await records.existing_records(["v1"])

        result = await reconciler.reconcile(
            "v1",
            [file_entry("photo.JPG"), file_entry("b.png"), file_entry("B.png")],
            existing,
        )
        assert [(s.path, s.reason) for s in result.skipped] == [
            ("photo.JPG", SkipReason.NAMING_CONFLICT),
            ("B.png", SkipReason.NAMING_CONFLICT),
        ]
        assert result.created == 1

    @pytest.mark.asyncio
    async def test_kind_mismatch_is_naming_conflict(
        self, records: RecordRepository, rules: EligibilityRules
    ) -> None:
        await records.create_record("v1", folder_entry("assets.png"))
        reconciler = Reconciler(records, rules)
        existing = await records.existing_records(["v1"])

        result = await reconciler.reconcile("v1", [file_entry("assets.png")], existing)
        assert result.skipped[0].reason == SkipReason.NAMING_CONFLICT
        assert result.seen_paths == []

    @pytest.mark.asyncio
    async def test_refreshes_changed_metadata(
        self, records: RecordRepository, rules: EligibilityRules
    ) -> None:
        stored = await records.create_record("v1", file_entry("a.pdf", size=10))
        reconciler = Reconciler(records, rules)
        existing = await records.existing_records(["v1"])

        unchanged = await reconciler.reconcile("v1", [file_entry("a.pdf", size=10)], existing)
        assert unchanged.refreshed == 0

        changed = await reconciler.reconcile("v1", [file_entry("a.pdf", size=99)], existing)
        assert changed.refreshed == 1
        refreshed = await records.get_record(stored.id)
        assert refreshed is not None
        assert refreshed.size == 99

    @pytest.mark.asyncio
    async def test_unreadable_entry_keeps_its_record_seen(
        self, records: RecordRepository, rules: EligibilityRules
    ) -> None:
        await records.create_record("v1", file_entry("locked.jpg"))
        reconciler = Reconciler(records, rules)
        existing = await records.existing_records(["v1"])

        entry = VolumeEntry(path="locked.jpg", size=5, error="Permission denied")
        result = await reconciler.reconcile("v1", [entry], existing)

        assert result.skipped[0].reason == SkipReason.READ_ERROR
        assert result.seen_paths == ["locked.jpg"]

    @pytest.mark.asyncio
    async def test_unreadable_folder_keeps_records_beneath_it(
        self, records: RecordRepository, rules: EligibilityRules
    ) -> None:
        for entry in (
            folder_entry("secret"),
            file_entry("secret/a.jpg"),
            folder_entry("secret/deep"),
            file_entry("secret/deep/b.png"),
            file_entry("secretive.jpg"),
        ):
            await records.create_record("v1", entry)
        reconciler = Reconciler(records, rules)
        existing = await records.existing_records(["v1"])

        blocked = VolumeEntry(path="secret", kind=EntryKind.FOLDER, error="Permission denied")
        result = await reconciler.reconcile("v1", [blocked], existing)

        assert sorted(result.seen_paths) == [
            "secret",
            "secret/a.jpg",
            "secret/deep",
            "secret/deep/b.png",
        ]
        assert [s.reason for s in result.skipped] == [SkipReason.READ_ERROR]

    @pytest.mark.asyncio
    async def test_cache_remote_images_registers_image_records(
        self,
        records: RecordRepository,
        rules: EligibilityRules,
        derived_cache: DerivedCache,
    ) -> None:
        matched = await records.create_record("v1", file_entry("a.png"))
        document = await records.create_record("v1", file_entry("a.pdf"))
        reconciler = Reconciler(records, rules, derived_cache)
        existing = await records.existing_records(["v1"])

        result = await reconciler.reconcile(
            "v1",
            [file_entry("a.png"), file_entry("a.pdf"), file_entry("new.jpg")],
            existing,
            cache_remote_images=True,
        )
        created = (await records.existing_records(["v1"]))["new.jpg"]

        assert result.cached == 2
        assert result.refreshed == 0
        assert await derived_cache.count(matched.id) == 1
        assert await derived_cache.count(created.id) == 1
        assert await derived_cache.count(document.id) == 0

        await reconciler.reconcile("v1", [file_entry("a.png")], existing, cache_remote_images=True)
        assert await derived_cache.count(matched.id) == 1

    @pytest.mark.asyncio
    async def test_images_not_cached_without_flag(
        self,
        records: RecordRepository,
        rules: EligibilityRules,
        derived_cache: DerivedCache,
    ) -> None:
        reconciler = Reconciler(records, rules, derived_cache)
        result = await reconciler.reconcile("v1", [file_entry("a.png")], {})
        created = (await records.existing_records(["v1"]))["a.png"]
        assert result.cached == 0
        assert await derived_cache.count(created.id) == 0
