"""Mark phase: move expired tracking records into the pending-deletion set."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterator, Literal

from ..context import ExecutionContext
from ..tracking.codec import TrackingDecodeError
from ..tracking.models import LegacyTrackingRecord, TrackingRecord, TrackingRecordBase, _as_utc
from ..tracking.store import TrackingStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MarkResult:
    """Outcome of evaluating one tracking file."""

    tracking_file: Path
    status: Literal["marked", "kept", "failed"]
    build_directory_number: int | None = None
    pending_file: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class GarbageMarker:
    """Copies obsolete records into the pending-deletion directory."""

    def __init__(
        self,
        store: TrackingStore,
        *,
        context: ExecutionContext,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._layout = store.layout
        self._context = context
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def mark_for_deletion(self, record: TrackingRecordBase) -> Path:
        """Write a pending-deletion copy of ``record`` under a fresh unique name.

        Legacy records are upgraded to the current format first.
        """

        if isinstance(record, LegacyTrackingRecord):
            record = record.upgrade()

        garbage_root = self._layout.garbage_root
        pending = garbage_root / f"{uuid.uuid4()}.json"
        while pending.exists():
            pending = garbage_root / f"{uuid.uuid4()}.json"

        self._store.write(pending, record)
        logger.debug(
            "Marked build directory %s for deletion in %s", record.build_directory_number, pending
        )
        return pending

    def iter_mark_expired(self, expiration: timedelta) -> Iterator[MarkResult]:
        """Evaluate every tracking file, yielding one result per file."""

        root = self._layout.mapping_root
        if not root.is_dir():
            self._context.info(f"Tracking directory {root} does not exist; nothing to collect")
            return

        now = _as_utc(self._clock())
        cutoff = now - expiration
        self._context.info(
            f"Build directories unused for {expiration.total_seconds() / 86400:g} days expire"
        )
        self._context.info(f"Current UTC time: {now.isoformat()}")

        for tracking_file in self._store.iter_tracking_files():
            try:
                result = self._evaluate(tracking_file, cutoff)
            except Exception as exc:
                self._context.error(
                    f"Error during build garbage collection of {tracking_file}", exc
                )
                result = MarkResult(tracking_file=tracking_file, status="failed", error=str(exc))
            yield result

    def mark_expired(self, expiration: timedelta) -> list[MarkResult]:
        results = list(self.iter_mark_expired(expiration))
        marked = sum(1 for result in results if result.status == "marked")
        failed = sum(1 for result in results if result.status == "failed")
        self._context.info(
            f"Evaluated {len(results)} tracking files: {marked} marked for deletion, "
            f"{failed} failed"
        )
        return results

    def _evaluate(self, tracking_file: Path, cutoff: datetime) -> MarkResult:
        self._context.info(f"Evaluating tracking file {tracking_file}")
        record = self._store.load_if_exists(tracking_file)
        if record is None:
            raise TrackingDecodeError(f"Unrecognized tracking file format: {tracking_file}")

        if isinstance(record, LegacyTrackingRecord):
            self._context.info(
                f"Legacy-format tracking file {tracking_file} is always collected"
            )
            return self._mark(tracking_file, record.upgrade())

        if record.last_run_on is None:
            self._context.info(
                f"Tracking file {tracking_file} has no recorded run and is always collected"
            )
            return self._mark(tracking_file, record)

        directory = self._layout.build_directory(record.build_directory_number)
        self._context.info(
            f"Build directory {directory} last used on {record.last_run_on.isoformat()}"
        )
        if record.last_run_on < cutoff:
            self._context.info(f"Marking {tracking_file} for deletion: unused past expiration")
            return self._mark(tracking_file, record)

        return MarkResult(
            tracking_file=tracking_file,
            status="kept",
            build_directory_number=record.build_directory_number,
        )

    def _mark(self, tracking_file: Path, record: TrackingRecord) -> MarkResult:
        pending = self.mark_for_deletion(record)
        self._store.delete(tracking_file)
        return MarkResult(
            tracking_file=tracking_file,
            status="marked",
            build_directory_number=record.build_directory_number,
            pending_file=pending,
        )


__all__ = ["GarbageMarker", "MarkResult"]
