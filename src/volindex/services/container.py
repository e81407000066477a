"""Service container with DI wiring."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from volindex.data.db import Database
from volindex.data.derived_cache import DerivedCache
from volindex.data.finalizer import Finalizer
from volindex.data.listers import LocalVolumeLister
from volindex.data.reconciler import EligibilityRules, Reconciler
from volindex.data.repositories import RecordRepository, VolumeRepository
from volindex.data.session_store import SessionStore
from volindex.services.indexing_service import IndexingService

if TYPE_CHECKING:
    from volindex.config import Config


@dataclass
class ServiceContainer:
    """Holds all application services. Built once at startup, immutable."""

    db: Database
    volumes: VolumeRepository
    records: RecordRepository
    derived_cache: DerivedCache
    indexing_service: IndexingService

    @classmethod
    async def create(cls, config: Config) -> ServiceContainer:
        """Async factory that wires all dependencies.

        The local lister is built from the volumes registered at startup.
        """
        db = Database(config.db_path)
        await db.connect()

        volumes = VolumeRepository(db)
        records = RecordRepository(db)
        derived_cache = DerivedCache(db)
        lister = LocalVolumeLister(
            {v.volume_id: Path(v.root_path) for v in await volumes.list_volumes()},
            skip_hidden=config.skip_hidden,
        )
        indexing_service = IndexingService(
            store=SessionStore(db),
            lister=lister,
            repository=records,
            reconciler=Reconciler(records, EligibilityRules.from_config(config), derived_cache),
            finalizer=Finalizer(records, derived_cache),
            config=config,
        )

        return cls(
            db=db,
            volumes=volumes,
            records=records,
            derived_cache=derived_cache,
            indexing_service=indexing_service,
        )

    async def close(self) -> None:
        """Shut down all services."""
        await self.db.close()
