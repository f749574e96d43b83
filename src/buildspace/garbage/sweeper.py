"""Sweep phase: delete build directories listed in the pending-deletion set."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Literal

from ..context import CancellationToken, ExecutionContext
from ..tracking.codec import TrackingDecodeError
from ..tracking.models import TrackingRecord
from ..tracking.store import TrackingStore

logger = logging.getLogger(__name__)

_MB = 1024.0 * 1024.0


@dataclass(frozen=True, slots=True)
class DiskUsage:
    total: int
    used: int
    free: int


@dataclass(slots=True)
class SweepResult:
    """Outcome of disposing one pending-deletion file."""

    pending_file: Path
    status: Literal["deleted", "failed"]
    build_directory_number: int | None = None
    error: str | None = None


def remove_tree(path: Path) -> None:
    """Delete ``path`` recursively; a missing path is a no-op."""

    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    if not path.exists():
        return
    shutil.rmtree(path)


class GarbageSweeper:
    """Deletes marked build directories and their pending-deletion records."""

    def __init__(
        self,
        store: TrackingStore,
        *,
        context: ExecutionContext,
        disk_usage: Callable[[Path], Any] | None = None,
    ) -> None:
        self._store = store
        self._layout = store.layout
        self._context = context
        self._disk_usage = disk_usage or shutil.disk_usage

    def report_disk_usage(self) -> DiskUsage | None:
        """Best-effort report of the volume holding the work root."""

        root = self._layout.work_root
        try:
            usage = self._disk_usage(root)
        except Exception as exc:
            self._context.warning(f"Unable to inspect disk usage for working directory {root}")
            logger.debug("Disk usage lookup failed for %s", root, exc_info=exc)
            return None

        report = DiskUsage(total=int(usage.total), used=int(usage.used), free=int(usage.free))
        self._context.info(f"Disk usage for working directory: {root}")
        self._context.info(f"Total size: {report.total / _MB:.2f} MB")
        self._context.info(f"Used space: {report.used / _MB:.2f} MB")
        self._context.info(f"Available space: {report.free / _MB:.2f} MB")
        return report

    def sweep(self, cancellation: CancellationToken | None = None) -> list[SweepResult]:
        """Dispose every pending-deletion file until done or cancelled.

        Failed items keep their pending file and are retried by a later sweep.
        """

        token = cancellation or self._context.cancellation
        self.report_disk_usage()

        garbage_root = self._layout.garbage_root
        if not garbage_root.is_dir():
            self._context.info(f"Garbage collection directory {garbage_root} does not exist")
            return []

        pending_files = list(self._store.iter_pending_files())
        if not pending_files:
            self._context.info(f"Garbage collection directory {garbage_root} is empty")
            return []

        logger.info("Found %d pending-deletion files", len(pending_files))
        results: list[SweepResult] = []
        for index, pending_file in enumerate(pending_files):
            if token.is_cancelled:
                remaining = len(pending_files) - index
                self._context.info(
                    f"Garbage collection cancelled; {remaining} pending deletions left for later"
                )
                break

            try:
                result = self._dispose(pending_file)
            except Exception as exc:
                self._context.error(f"Error deleting garbage collected item {pending_file}", exc)
                result = SweepResult(pending_file=pending_file, status="failed", error=str(exc))
            results.append(result)

        self.report_disk_usage()
        return results

    def _dispose(self, pending_file: Path) -> SweepResult:
        record = self._store.load_if_exists(pending_file)
        if not isinstance(record, TrackingRecord):
            raise TrackingDecodeError(
                f"Pending-deletion file {pending_file} is not a current-format tracking record"
            )

        directory = self._layout.build_directory(record.build_directory_number)
        self._context.info(f"Deleting {directory}")
        remove_tree(directory)

        self._context.info(f"Deleting garbage collection tracking file {pending_file}")
        self._store.delete(pending_file)
        return SweepResult(
            pending_file=pending_file,
            status="deleted",
            build_directory_number=record.build_directory_number,
        )


__all__ = ["DiskUsage", "GarbageSweeper", "SweepResult", "remove_tree"]
