"""Reconciliation result models."""

from __future__ import annotations

from dataclasses import dataclass, field

from volindex.models.sessions import SkipRecord


@dataclass(slots=True)
class ReconcileResult:
    """Result summary for reconciling one listing page."""

    seen_paths: list[str] = field(default_factory=list)
    skipped: list[SkipRecord] = field(default_factory=list)
    created: int = 0
    refreshed: int = 0
    matched: int = 0
    cached: int = 0
