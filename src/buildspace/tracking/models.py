"""Data models for build-directory tracking."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

FILE_FORMAT_VERSION = 3
DEFAULT_SOURCES_SUBDIRECTORY = "s"

_SEPARATORS = re.compile(r"[\\/]+")


class LegacyUpgradeError(ValueError):
    """Raised when a legacy record cannot be converted to the current format."""


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DefinitionIdentity(BaseModel):
    """Identity and display metadata of a recurring build definition."""

    definition_id: str = Field(..., description="Stable identifier of the build definition.")
    definition_name: str = Field(default="", description="Display name of the definition.")
    system: str = Field(default="build", description="Hosting system, e.g. 'build' or 'release'.")
    collection_id: str = Field(default="")
    collection_url: str = Field(default="")
    repository_url: str = Field(default="")
    repository_type: str = Field(default="")
    sources_subdirectory: str = Field(
        default=DEFAULT_SOURCES_SUBDIRECTORY,
        description="Name of the sources folder inside the build directory.",
    )

    @field_validator("definition_id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Definition id must not be empty")
        return normalized


class TopLevelConfig(BaseModel):
    """Singleton counter state for a workspace root."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    last_build_directory_number: int = Field(default=0, ge=0)
    last_build_directory_created_on: datetime | None = None

    @field_validator("last_build_directory_created_on")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class TrackingRecord(BaseModel):
    """Current-format tracking record tying a definition to a build directory."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    file_format_version: int = Field(default=FILE_FORMAT_VERSION)
    build_directory_number: int = Field(..., ge=1)
    hash_key: str = ""
    system: str = ""
    collection_id: str = ""
    collection_url: str = ""
    definition_id: str = ""
    definition_name: str = ""
    repository_url: str = ""
    repository_type: str = ""
    sources_subdirectory: str = DEFAULT_SOURCES_SUBDIRECTORY
    artifacts_subdirectory: str = "a"
    binaries_subdirectory: str = "b"
    test_results_subdirectory: str = "TestResults"
    last_run_on: datetime | None = None
    last_maintenance_attempted_on: datetime | None = None
    last_maintenance_completed_on: datetime | None = None

    @field_validator(
        "last_run_on", "last_maintenance_attempted_on", "last_maintenance_completed_on"
    )
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def build_directory(self) -> str:
        return str(self.build_directory_number)

    @property
    def subdirectories(self) -> tuple[str, ...]:
        """Relative paths of the standard folders inside the build directory."""

        root = PurePosixPath(self.build_directory)
        return tuple(
            str(root / name)
            for name in (
                self.sources_subdirectory,
                self.artifacts_subdirectory,
                self.binaries_subdirectory,
                self.test_results_subdirectory,
            )
        )

    def update_run_properties(
        self, now: datetime, identity: DefinitionIdentity | None = None
    ) -> None:
        """Stamp the last run time and refresh display metadata from the identity."""

        self.last_run_on = now
        if identity is None:
            return
        self.system = identity.system
        self.collection_id = identity.collection_id
        self.collection_url = identity.collection_url
        self.definition_id = identity.definition_id
        self.definition_name = identity.definition_name
        self.repository_url = identity.repository_url


class LegacyTrackingRecord(BaseModel):
    """Pre-versioning record shape that only remembers the build directory path."""

    build_directory: str
    system: str = ""
    collection_id: str = ""
    definition_id: str = ""
    repository_url: str = ""
    hash_key: str = ""

    @property
    def directory_name(self) -> str:
        parts = [part for part in _SEPARATORS.split(self.build_directory) if part]
        return parts[-1] if parts else ""

    def upgrade(self) -> TrackingRecord:
        """Convert to the current format; the directory name becomes the number."""

        name = self.directory_name
        if not name.isdecimal() or int(name) < 1:
            raise LegacyUpgradeError(
                f"Legacy build directory '{self.build_directory}' is not a numbered directory"
            )
        return TrackingRecord(
            build_directory_number=int(name),
            hash_key=self.hash_key,
            system=self.system,
            collection_id=self.collection_id,
            definition_id=self.definition_id,
            repository_url=self.repository_url,
            repository_type="",
            sources_subdirectory=DEFAULT_SOURCES_SUBDIRECTORY,
        )


TrackingRecordBase = TrackingRecord | LegacyTrackingRecord


__all__ = [
    "DEFAULT_SOURCES_SUBDIRECTORY",
    "DefinitionIdentity",
    "FILE_FORMAT_VERSION",
    "LegacyTrackingRecord",
    "LegacyUpgradeError",
    "TopLevelConfig",
    "TrackingRecord",
    "TrackingRecordBase",
]
