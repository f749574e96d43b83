"""Two-phase garbage collection of build directories."""

from .marker import GarbageMarker, MarkResult
from .sweeper import DiskUsage, GarbageSweeper, SweepResult

__all__ = ["DiskUsage", "GarbageMarker", "GarbageSweeper", "MarkResult", "SweepResult"]
