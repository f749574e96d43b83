"""Build-workspace tracking and garbage collection."""

__version__ = "0.1.0"

from .context import CancellationToken, ExecutionContext, LoggingExecutionContext
from .manager import TrackingManager
from .tracking import (
    AllocationInvariantError,
    DefinitionIdentity,
    HashKeyError,
    LegacyTrackingRecord,
    LegacyUpgradeError,
    TopLevelConfig,
    TrackingDecodeError,
    TrackingRecord,
    TrackingRecordBase,
    WorkspaceLayout,
)

__all__ = [
    "AllocationInvariantError",
    "CancellationToken",
    "DefinitionIdentity",
    "ExecutionContext",
    "HashKeyError",
    "LegacyTrackingRecord",
    "LegacyUpgradeError",
    "LoggingExecutionContext",
    "TopLevelConfig",
    "TrackingDecodeError",
    "TrackingManager",
    "TrackingRecord",
    "TrackingRecordBase",
    "WorkspaceLayout",
    "__version__",
]
