"""Facade over tracking, allocation and garbage collection of build directories."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from .config import BuildspaceSettings
from .context import CancellationToken, ExecutionContext, LoggingExecutionContext
from .garbage import GarbageMarker, GarbageSweeper, MarkResult, SweepResult
from .tracking import (
    DefinitionIdentity,
    LegacyTrackingRecord,
    LegacyUpgradeError,
    TopLevelAllocator,
    TrackingRecord,
    TrackingRecordBase,
    TrackingStore,
    WorkspaceLayout,
)

logger = logging.getLogger(__name__)


class TrackingManager:
    """Assigns build directories to definitions and reclaims unused ones."""

    def __init__(
        self,
        layout: WorkspaceLayout,
        *,
        context: ExecutionContext | None = None,
        clock: Callable[[], datetime] | None = None,
        disk_usage: Callable[[Path], Any] | None = None,
    ) -> None:
        self._layout = layout
        self._context = context or LoggingExecutionContext()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._store = TrackingStore(layout, context=self._context, clock=self._clock)
        self._allocator = TopLevelAllocator(layout, context=self._context, clock=self._clock)
        self._marker = GarbageMarker(self._store, context=self._context, clock=self._clock)
        self._sweeper = GarbageSweeper(self._store, context=self._context, disk_usage=disk_usage)

    @classmethod
    def from_settings(
        cls,
        settings: BuildspaceSettings,
        *,
        context: ExecutionContext | None = None,
    ) -> TrackingManager:
        return cls(WorkspaceLayout.from_settings(settings), context=context)

    @property
    def layout(self) -> WorkspaceLayout:
        return self._layout

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def store(self) -> TrackingStore:
        return self._store

    @property
    def allocator(self) -> TopLevelAllocator:
        return self._allocator

    def tracking_file_for(self, hash_key: str) -> Path:
        return self._layout.tracking_file_for(hash_key)

    def create(
        self,
        identity: DefinitionIdentity,
        hash_key: str,
        force_directory: int | None = None,
    ) -> TrackingRecord:
        """Allocate a directory number and persist a new record for ``hash_key``."""

        path = self._layout.tracking_file_for(hash_key)
        number = self._allocator.allocate_next(force_directory)
        record = self._store.create(identity, number, hash_key=hash_key, path=path)
        logger.info("Assigned build directory %s to hash key %s", number, hash_key)
        return record

    def load_if_exists(self, path: Path) -> TrackingRecordBase | None:
        return self._store.load_if_exists(path)

    def prepare_directory(
        self,
        identity: DefinitionIdentity,
        hash_key: str,
        force_directory: int | None = None,
    ) -> TrackingRecord:
        """Return the current record for ``hash_key``, creating one if needed.

        A legacy record found at the path is handed to garbage collection and
        replaced by a freshly allocated current-format record.
        """

        path = self._layout.tracking_file_for(hash_key)
        existing = self._store.load_if_exists(path)
        if isinstance(existing, TrackingRecord):
            self.update_run_metadata(existing, path, identity)
            return existing

        if isinstance(existing, LegacyTrackingRecord):
            self._context.info(f"Replacing legacy tracking file {path}")
            try:
                self.mark_for_garbage_collection(existing)
            except LegacyUpgradeError as exc:
                self._context.warning(f"Legacy build directory left in place: {exc}")

        return self.create(identity, hash_key, force_directory)

    def mark_for_garbage_collection(self, record: TrackingRecordBase) -> Path:
        return self._marker.mark_for_deletion(record)

    def update_run_metadata(
        self,
        record: TrackingRecord,
        path: Path,
        identity: DefinitionIdentity | None = None,
    ) -> None:
        record.update_run_properties(self._clock(), identity)
        self._store.write(path, record)

    def record_maintenance_started(self, record: TrackingRecord, path: Path) -> None:
        record.last_maintenance_attempted_on = self._clock()
        record.last_maintenance_completed_on = None
        self._store.write(path, record)

    def record_maintenance_completed(self, record: TrackingRecord, path: Path) -> None:
        record.last_maintenance_completed_on = self._clock()
        self._store.write(path, record)

    def mark_expired(self, expiration: timedelta) -> list[MarkResult]:
        return self._marker.mark_expired(expiration)

    def sweep(self, cancellation: CancellationToken | None = None) -> list[SweepResult]:
        return self._sweeper.sweep(cancellation)


__all__ = ["TrackingManager"]
