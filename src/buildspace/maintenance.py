"""Maintenance pass bootstrap: mark expired build directories, then sweep."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from . import __version__
from .config import get_settings
from .context import CancellationToken
from .manager import TrackingManager


def configure_logging(level: str) -> None:
    """Configure root logging for maintenance runs."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


@dataclass(slots=True)
class MaintenanceReport:
    marked: int = 0
    kept: int = 0
    mark_failures: int = 0
    deleted: int = 0
    sweep_failures: int = 0
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not (self.mark_failures or self.sweep_failures)


def run_maintenance(
    manager: TrackingManager,
    expiration: timedelta,
    *,
    cancellation: CancellationToken | None = None,
) -> MaintenanceReport:
    """Run one best-effort garbage collection pass; errors are reported, not raised."""

    context = manager.context
    token = cancellation or context.cancellation
    report = MaintenanceReport()

    try:
        for result in manager.mark_expired(expiration):
            if result.status == "marked":
                report.marked += 1
            elif result.status == "kept":
                report.kept += 1
            else:
                report.mark_failures += 1
    except Exception as exc:
        context.error("Marking expired build directories failed", exc)
        report.mark_failures += 1

    if token.is_cancelled:
        report.cancelled = True
        context.info("Maintenance cancelled before sweeping pending deletions")
        return report

    try:
        for result in manager.sweep(token):
            if result.status == "deleted":
                report.deleted += 1
            else:
                report.sweep_failures += 1
    except Exception as exc:
        context.error("Deleting pending build directories failed", exc)
        report.sweep_failures += 1

    report.cancelled = token.is_cancelled
    return report


def main() -> None:
    """Entry point for a maintenance pass via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    manager = TrackingManager.from_settings(settings)
    logging.getLogger(__name__).info(
        "Starting buildspace maintenance",
        extra={
            "version": __version__,
            "work_root": str(settings.work_root),
            "expiration_days": settings.expiration_days,
        },
    )
    report = run_maintenance(manager, settings.expiration)
    logging.getLogger(__name__).info(
        "Maintenance finished: %d marked, %d deleted, %d failures",
        report.marked,
        report.deleted,
        report.mark_failures + report.sweep_failures,
    )
    if not report.ok:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
