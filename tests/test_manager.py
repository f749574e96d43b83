from __future__ import annotations

from collections import namedtuple
from datetime import timedelta

import pytest
from conftest import FakeClock, RecordingContext

from buildspace import (
    AllocationInvariantError,
    DefinitionIdentity,
    LegacyTrackingRecord,
    TrackingManager,
    TrackingRecord,
    WorkspaceLayout,
)

Usage = namedtuple("Usage", "total used free")


def make_manager(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> TrackingManager:
    return TrackingManager(
        layout, context=context, clock=clock, disk_usage=lambda _path: Usage(1, 1, 0)
    )


def test_create_assigns_sequential_directories(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    manager = make_manager(layout, context, clock)

    first = manager.create(DefinitionIdentity(definition_id="def-1"), "abc")
    second = manager.create(DefinitionIdentity(definition_id="def-2"), "xyz")

    assert first.build_directory_number == 1
    assert second.build_directory_number == 2
    assert layout.build_directory(1).is_dir()
    assert layout.build_directory(2).is_dir()


def test_create_then_load_returns_allocated_number(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    manager = make_manager(layout, context, clock)
    keys = ["abc", "collection/1", "collection/2", "f00d"]

    allocated = {
        key: manager.create(DefinitionIdentity(definition_id=key), key).build_directory_number
        for key in keys
    }

    for key, number in allocated.items():
        loaded = manager.load_if_exists(manager.tracking_file_for(key))
        assert isinstance(loaded, TrackingRecord)
        assert loaded.build_directory_number == number
    assert len(set(allocated.values())) == len(keys)


def test_create_with_forced_directory(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    manager = make_manager(layout, context, clock)

    record = manager.create(DefinitionIdentity(definition_id="def"), "abc", force_directory=17)

    assert record.build_directory_number == 17
    with pytest.raises(AllocationInvariantError):
        manager.create(DefinitionIdentity(definition_id="def"), "xyz", force_directory=18)
    assert manager.load_if_exists(manager.tracking_file_for("xyz")) is None


def test_prepare_directory_reuses_existing_record(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    manager = make_manager(layout, context, clock)
    created = manager.prepare_directory(DefinitionIdentity(definition_id="def"), "abc")
    clock.advance(days=2)

    reused = manager.prepare_directory(
        DefinitionIdentity(definition_id="def", definition_name="renamed"), "abc"
    )

    assert reused.build_directory_number == created.build_directory_number
    loaded = manager.load_if_exists(manager.tracking_file_for("abc"))
    assert isinstance(loaded, TrackingRecord)
    assert loaded.last_run_on == clock.now
    assert loaded.definition_name == "renamed"


def test_prepare_directory_replaces_legacy_record(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    manager = make_manager(layout, context, clock)
    path = manager.tracking_file_for("abc")
    manager.store.write(path, LegacyTrackingRecord(build_directory=str(layout.work_root / "4")))

    record = manager.prepare_directory(DefinitionIdentity(definition_id="def"), "abc")

    assert record.build_directory_number == 1
    loaded = manager.load_if_exists(path)
    assert isinstance(loaded, TrackingRecord)
    pending = [manager.load_if_exists(item) for item in manager.store.iter_pending_files()]
    assert [item.build_directory_number for item in pending] == [4]


def test_prepare_directory_skips_number_held_by_legacy_record(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    manager = make_manager(layout, context, clock)
    (layout.work_root / "1" / "s").mkdir(parents=True)
    (layout.work_root / "1" / "s" / "keep.txt").write_text("sources", encoding="utf-8")
    path = manager.tracking_file_for("abc")
    manager.store.write(path, LegacyTrackingRecord(build_directory=str(layout.work_root / "1")))
    assert not layout.top_level_file.exists()

    record = manager.prepare_directory(DefinitionIdentity(definition_id="def"), "abc")

    assert record.build_directory_number == 2
    assert (layout.work_root / "2" / "s").is_dir()
    assert (layout.work_root / "1" / "s" / "keep.txt").is_file()

    results = manager.sweep()

    assert [result.status for result in results] == ["deleted"]
    assert not (layout.work_root / "1").exists()
    assert (layout.work_root / "2" / "s").is_dir()
    loaded = manager.load_if_exists(path)
    assert isinstance(loaded, TrackingRecord)
    assert loaded.build_directory_number == 2


def test_maintenance_timestamps(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    manager = make_manager(layout, context, clock)
    record = manager.create(DefinitionIdentity(definition_id="def"), "abc")
    path = manager.tracking_file_for("abc")

    manager.record_maintenance_started(record, path)
    started_at = clock.now
    clock.advance(minutes=5)
    manager.record_maintenance_completed(record, path)
    clock.advance(days=1)
    manager.record_maintenance_started(record, path)

    loaded = manager.load_if_exists(path)
    assert isinstance(loaded, TrackingRecord)
    assert loaded.last_maintenance_attempted_on == clock.now
    assert loaded.last_maintenance_attempted_on > started_at
    assert loaded.last_maintenance_completed_on is None

    manager.record_maintenance_completed(record, path)
    loaded = manager.load_if_exists(path)
    assert loaded.last_maintenance_completed_on == clock.now


def test_mark_for_garbage_collection_accepts_legacy_record(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    manager = make_manager(layout, context, clock)

    pending = manager.mark_for_garbage_collection(LegacyTrackingRecord(build_directory="_work/6"))

    loaded = manager.load_if_exists(pending)
    assert isinstance(loaded, TrackingRecord)
    assert loaded.build_directory_number == 6


def test_full_lifecycle_reclaims_expired_directory(
    layout: WorkspaceLayout, context: RecordingContext, clock: FakeClock
) -> None:
    manager = make_manager(layout, context, clock)
    stale = manager.create(DefinitionIdentity(definition_id="stale"), "stale")
    clock.advance(days=40)
    fresh = manager.create(DefinitionIdentity(definition_id="fresh"), "fresh")

    marked = manager.mark_expired(timedelta(days=30))
    swept = manager.sweep()

    assert [result.status for result in marked] == ["kept", "marked"]
    assert [result.build_directory_number for result in swept] == [stale.build_directory_number]
    assert not layout.build_directory(stale.build_directory_number).exists()
    assert layout.build_directory(fresh.build_directory_number).exists()
    assert not manager.tracking_file_for("stale").exists()
    assert manager.create(DefinitionIdentity(definition_id="next"), "next").build_directory_number == 3
