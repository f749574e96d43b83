"""Tracking records, their codec, storage and directory allocation."""

from .allocator import AllocationInvariantError, TopLevelAllocator
from .codec import TrackingDecodeError
from .layout import HashKeyError, WorkspaceLayout
from .models import (
    DefinitionIdentity,
    LegacyTrackingRecord,
    LegacyUpgradeError,
    TopLevelConfig,
    TrackingRecord,
    TrackingRecordBase,
)
from .store import TrackingStore

__all__ = [
    "AllocationInvariantError",
    "DefinitionIdentity",
    "HashKeyError",
    "LegacyTrackingRecord",
    "LegacyUpgradeError",
    "TopLevelAllocator",
    "TopLevelConfig",
    "TrackingDecodeError",
    "TrackingRecord",
    "TrackingRecordBase",
    "TrackingStore",
    "WorkspaceLayout",
]
