from __future__ import annotations

import json

import pytest
from conftest import FakeClock, RecordingContext

from buildspace.tracking import AllocationInvariantError, TopLevelAllocator, WorkspaceLayout
from buildspace.tracking.allocator import CORRUPTED_SUFFIX


def test_allocate_next_is_sequential_and_persisted(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    allocator = TopLevelAllocator(layout, context=context, clock=clock)

    assert [allocator.allocate_next() for _ in range(3)] == [1, 2, 3]

    payload = json.loads(layout.top_level_file.read_text(encoding="utf-8"))
    assert payload["lastBuildDirectoryNumber"] == 3
    assert payload["lastBuildDirectoryCreatedOn"].startswith("2025-01-01T00:00:00")


def test_allocate_next_never_repeats_across_instances(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    seen = set()
    for _ in range(25):
        allocator = TopLevelAllocator(layout, context=context, clock=clock)
        seen.add(allocator.allocate_next())

    assert seen == set(range(1, 26))


def test_forced_value_on_fresh_counter(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    allocator = TopLevelAllocator(layout, context=context, clock=clock)

    assert allocator.allocate_next(force_value=42) == 42
    assert allocator.allocate_next() == 43


def test_forced_value_after_allocation_fails(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    allocator = TopLevelAllocator(layout, context=context, clock=clock)
    allocator.allocate_next()

    with pytest.raises(AllocationInvariantError):
        allocator.allocate_next(force_value=7)

    assert allocator.load().last_build_directory_number == 1


def test_forced_value_must_be_positive(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    allocator = TopLevelAllocator(layout, context=context, clock=clock)

    with pytest.raises(ValueError):
        allocator.allocate_next(force_value=0)


def test_corrupt_counter_is_quarantined_and_rebuilt_from_directories(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    for name in ("1", "2", "3", "4", "5", "_temp", "abc", "07x"):
        (layout.work_root / name).mkdir(parents=True)
    layout.mapping_root.mkdir(parents=True)
    layout.top_level_file.write_text("{{{ not json", encoding="utf-8")
    allocator = TopLevelAllocator(layout, context=context, clock=clock)

    assert allocator.allocate_next() == 6

    sidecar = layout.top_level_file.with_name(layout.top_level_file.name + CORRUPTED_SUFFIX)
    assert sidecar.read_text(encoding="utf-8") == "{{{ not json"
    assert len(context.of("warning")) == 1
    assert allocator.allocate_next() == 7


def test_null_counter_file_counts_as_corrupt(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    (layout.work_root / "12").mkdir(parents=True)
    layout.mapping_root.mkdir(parents=True)
    layout.top_level_file.write_text("null", encoding="utf-8")

    assert TopLevelAllocator(layout, context=context, clock=clock).allocate_next() == 13


def test_missing_counter_file_continues_after_existing_directories(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    (layout.work_root / "3").mkdir(parents=True)
    (layout.work_root / "7").mkdir()

    allocator = TopLevelAllocator(layout, context=context, clock=clock)

    assert allocator.allocate_next() == 8
    assert allocator.allocate_next() == 9
    assert context.messages == []
    assert not layout.top_level_file.with_name(layout.top_level_file.name + CORRUPTED_SUFFIX).exists()


def test_forced_number_rejected_when_directories_exist_without_counter(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    (layout.work_root / "2").mkdir(parents=True)

    with pytest.raises(AllocationInvariantError):
        TopLevelAllocator(layout, context=context, clock=clock).allocate_next(force_value=5)


def test_highest_directory_number_ignores_files(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    layout.work_root.mkdir(parents=True)
    (layout.work_root / "99").write_text("", encoding="utf-8")
    (layout.work_root / "3").mkdir()

    assert TopLevelAllocator(layout, context=context, clock=clock).highest_directory_number() == 3
