"""On-disk layout of a workspace root."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import BuildspaceSettings

WINDOWS_ABSOLUTE_PATTERN = re.compile(r"^[a-zA-Z]:[\\/]")


class HashKeyError(ValueError):
    """Raised when a hash key cannot be mapped below the mapping root."""


@dataclass(frozen=True, slots=True)
class WorkspaceLayout:
    """Resolves every path used for tracking and garbage collection."""

    work_root: Path
    mapping_directory: str = "SourceRootMapping"
    garbage_directory: str = "GC"
    tracking_file_name: str = "trackingfile.json"
    top_level_file_name: str = "TopLevelTracking.json"

    @classmethod
    def from_settings(cls, settings: BuildspaceSettings) -> WorkspaceLayout:
        return cls(
            work_root=Path(settings.work_root),
            mapping_directory=settings.mapping_directory,
            garbage_directory=settings.garbage_directory,
            tracking_file_name=settings.tracking_file_name,
            top_level_file_name=settings.top_level_file_name,
        )

    @property
    def mapping_root(self) -> Path:
        return self.work_root / self.mapping_directory

    @property
    def garbage_root(self) -> Path:
        return self.mapping_root / self.garbage_directory

    @property
    def top_level_file(self) -> Path:
        return self.mapping_root / self.top_level_file_name

    def build_directory(self, number: int) -> Path:
        if number < 1:
            raise ValueError(f"Build directory number must be >= 1, got {number}")
        return self.work_root / str(number)

    def tracking_file_for(self, hash_key: str) -> Path:
        """Map a hash key to its tracking file, one directory level per key segment."""

        normalized = hash_key.strip().replace("\\", "/")
        if not normalized:
            raise HashKeyError("Hash key is empty")
        if normalized.startswith("/") or WINDOWS_ABSOLUTE_PATTERN.match(normalized):
            raise HashKeyError(f"Hash key '{hash_key}' must not be an absolute path")

        parts = [part for part in normalized.split("/") if part not in ("", ".")]
        if not parts:
            raise HashKeyError(f"Hash key '{hash_key}' has no path segments")
        if any(part == ".." for part in parts):
            raise HashKeyError(f"Hash key '{hash_key}' must not contain '..' segments")
        if parts[0] == self.garbage_directory:
            raise HashKeyError(
                f"Hash key '{hash_key}' collides with the pending-deletion directory"
            )
        return self.mapping_root.joinpath(*parts) / self.tracking_file_name


__all__ = ["HashKeyError", "WorkspaceLayout"]
