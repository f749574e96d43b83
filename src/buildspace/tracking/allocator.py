"""Allocation of sequential build-directory numbers."""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime, timezone
from typing import Callable

from ..context import ExecutionContext
from . import codec
from .codec import TrackingDecodeError
from .layout import WorkspaceLayout
from .models import TopLevelConfig
from .store import write_atomic

CORRUPTED_SUFFIX = ".corrupted"

_NUMBERED_DIRECTORY = re.compile(r"^[0-9]+$")

logger = logging.getLogger(__name__)


class AllocationInvariantError(RuntimeError):
    """Raised when a forced number is requested after allocation has begun."""


class TopLevelAllocator:
    """Owns the workspace counter stored in the top-level tracking file.

    The counter is loaded and saved on every call; nothing is cached between
    allocations.
    """

    def __init__(
        self,
        layout: WorkspaceLayout,
        *,
        context: ExecutionContext | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._layout = layout
        self._context = context
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def load(self) -> TopLevelConfig:
        path = self._layout.top_level_file
        logger.debug("Loading top-level tracking file if exists: %s", path)
        if not path.exists():
            return TopLevelConfig(last_build_directory_number=self.highest_directory_number())

        try:
            return codec.decode_top_level(path.read_bytes())
        except TrackingDecodeError as exc:
            self._warn(f"Rebuilding corrupted top-level tracking file {path}: {exc}")
            shutil.copyfile(path, path.with_name(path.name + CORRUPTED_SUFFIX))
            return TopLevelConfig(last_build_directory_number=self.highest_directory_number())

    def save(self, config: TopLevelConfig) -> None:
        write_atomic(self._layout.top_level_file, codec.encode(config))

    def highest_directory_number(self) -> int:
        """Largest purely numeric directory name under the work root, or 0."""

        highest = 0
        root = self._layout.work_root
        if not root.is_dir():
            return highest
        for entry in root.iterdir():
            if entry.is_dir() and _NUMBERED_DIRECTORY.match(entry.name):
                highest = max(highest, int(entry.name))
        return highest

    def allocate_next(self, force_value: int | None = None) -> int:
        config = self.load()

        if force_value is not None:
            if config.last_build_directory_number != 0:
                raise AllocationInvariantError(
                    "Cannot force build directory number "
                    f"{force_value}: counter is already at {config.last_build_directory_number}"
                )
            if force_value < 1:
                raise ValueError(f"Forced build directory number must be >= 1, got {force_value}")
            config.last_build_directory_number = force_value
        else:
            config.last_build_directory_number += 1

        config.last_build_directory_created_on = self._clock()
        self.save(config)
        logger.debug("Allocated build directory %s", config.last_build_directory_number)
        return config.last_build_directory_number

    def _warn(self, message: str) -> None:
        if self._context is not None:
            self._context.warning(message)
        else:
            logger.warning(message)


__all__ = ["AllocationInvariantError", "CORRUPTED_SUFFIX", "TopLevelAllocator"]
