"""File-backed persistence of tracking records."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from ..context import ExecutionContext
from . import codec
from .layout import WorkspaceLayout
from .models import DefinitionIdentity, TopLevelConfig, TrackingRecord, TrackingRecordBase

logger = logging.getLogger(__name__)


def write_atomic(path: Path, payload: bytes) -> None:
    """Replace ``path`` with ``payload`` via a temp file in the same directory."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)


class TrackingStore:
    """Read and write tracking files below a workspace's mapping root.

    I/O errors propagate to the caller; nothing is retried here.
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

    @property
    def layout(self) -> WorkspaceLayout:
        return self._layout

    def create(
        self,
        identity: DefinitionIdentity,
        build_directory_number: int,
        *,
        hash_key: str,
        path: Path | None = None,
    ) -> TrackingRecord:
        """Persist a new record for ``hash_key`` and lay out its build directory."""

        record = TrackingRecord(
            build_directory_number=build_directory_number,
            hash_key=hash_key,
            repository_type=identity.repository_type,
            sources_subdirectory=identity.sources_subdirectory,
        )
        record.update_run_properties(self._clock(), identity)

        target = path or self._layout.tracking_file_for(hash_key)
        self.write(target, record)
        self.ensure_build_directories(record)
        return record

    def ensure_build_directories(self, record: TrackingRecord) -> None:
        for relative in record.subdirectories:
            (self._layout.work_root / relative).mkdir(parents=True, exist_ok=True)

    def load_if_exists(self, path: Path) -> TrackingRecordBase | None:
        """Return the decoded record, or ``None`` when the file is missing.

        Content without a format marker that is not a readable legacy record
        also yields ``None`` after a warning. Malformed current-format content
        raises ``TrackingDecodeError``.
        """

        path = Path(path)
        if not path.exists():
            return None

        content = path.read_bytes()
        record = codec.decode(content)
        if record is None:
            message = f"Unable to parse build tracking file {path}: {content[:200]!r}"
            if self._context is not None:
                self._context.warning(message)
            else:
                logger.warning(message)
        return record

    def write(self, path: Path, record: TrackingRecordBase | TopLevelConfig) -> None:
        logger.debug("Writing tracking file %s", path)
        write_atomic(Path(path), codec.encode(record))

    def delete(self, path: Path) -> None:
        """Remove a tracking file; a missing file is not an error."""

        try:
            Path(path).unlink()
        except FileNotFoundError:
            logger.debug("Tracking file %s already removed", path)

    def iter_tracking_files(self) -> Iterator[Path]:
        root = self._layout.mapping_root
        if not root.is_dir():
            return
        for path in sorted(root.rglob(self._layout.tracking_file_name)):
            if path.is_file() and self._layout.garbage_root not in path.parents:
                yield path

    def iter_pending_files(self) -> Iterator[Path]:
        root = self._layout.garbage_root
        if not root.is_dir():
            return
        for path in sorted(root.glob("*.json")):
            if path.is_file():
                yield path


__all__ = ["TrackingStore", "write_atomic"]
