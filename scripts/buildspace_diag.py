"""buildspace diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from datetime import timedelta

from buildspace.config import BuildspaceSettings
from buildspace.context import LoggingExecutionContext
from buildspace.maintenance import configure_logging, run_maintenance
from buildspace.manager import TrackingManager
from buildspace.tracking import (
    AllocationInvariantError,
    DefinitionIdentity,
    HashKeyError,
    LegacyTrackingRecord,
    TrackingRecord,
)


def load_manager(settings: BuildspaceSettings) -> TrackingManager:
    return TrackingManager.from_settings(settings, context=LoggingExecutionContext())


def _describe(path, record) -> dict[str, object]:
    if isinstance(record, TrackingRecord):
        return {
            "file": str(path),
            "format": "current",
            "build_directory": record.build_directory_number,
            "definition_id": record.definition_id,
            "definition_name": record.definition_name,
            "last_run_on": record.last_run_on.isoformat() if record.last_run_on else None,
        }
    if isinstance(record, LegacyTrackingRecord):
        return {"file": str(path), "format": "legacy", "build_directory": record.build_directory}
    return {"file": str(path), "format": "unreadable"}


def cmd_records(args: argparse.Namespace) -> None:
    settings = BuildspaceSettings()
    manager = load_manager(settings)
    entries = []
    for path in manager.store.iter_tracking_files():
        try:
            record = manager.load_if_exists(path)
        except ValueError:
            record = None
        entries.append(_describe(path, record))

    if args.json:
        print(json.dumps(entries, indent=2))
    else:
        for entry in entries:
            print(f"{entry['file']} [{entry['format']}] -> {entry.get('build_directory')}")


def cmd_pending(args: argparse.Namespace) -> None:
    settings = BuildspaceSettings()
    manager = load_manager(settings)
    entries = []
    for path in manager.store.iter_pending_files():
        try:
            record = manager.load_if_exists(path)
        except ValueError:
            record = None
        entries.append(_describe(path, record))
    print(json.dumps(entries, indent=2))


def cmd_prepare(args: argparse.Namespace) -> None:
    settings = BuildspaceSettings()
    manager = load_manager(settings)
    identity = DefinitionIdentity(
        definition_id=args.definition_id,
        definition_name=args.definition_name or "",
        repository_type=args.repository_type or "",
    )
    force = settings.agent_id if args.force_agent_id else None
    if args.force_agent_id and force is None:
        print("BUILDSPACE_AGENT_ID must be set to force the build directory number")
        raise SystemExit(2)
    try:
        record = manager.prepare_directory(identity, args.hash_key, force_directory=force)
    except (AllocationInvariantError, HashKeyError) as exc:
        print(f"Cannot prepare build directory: {exc}")
        raise SystemExit(1)
    print(json.dumps(_describe(manager.tracking_file_for(args.hash_key), record), indent=2))


def cmd_mark(args: argparse.Namespace) -> None:
    settings = BuildspaceSettings()
    configure_logging(settings.log_level)
    manager = load_manager(settings)
    expiration = timedelta(days=args.days) if args.days else settings.expiration
    results = manager.mark_expired(expiration)
    payload = {
        "evaluated": len(results),
        "marked": [str(result.tracking_file) for result in results if result.status == "marked"],
        "failed": [
            {"file": str(result.tracking_file), "error": result.error}
            for result in results
            if result.status == "failed"
        ],
    }
    print(json.dumps(payload, indent=2))


def cmd_sweep(args: argparse.Namespace) -> None:
    settings = BuildspaceSettings()
    configure_logging(settings.log_level)
    manager = load_manager(settings)
    results = manager.sweep()
    payload = [
        {
            "pending_file": str(result.pending_file),
            "status": result.status,
            "build_directory": result.build_directory_number,
            "error": result.error,
        }
        for result in results
    ]
    print(json.dumps(payload, indent=2))


def cmd_maintain(args: argparse.Namespace) -> None:
    settings = BuildspaceSettings()
    configure_logging(settings.log_level)
    manager = load_manager(settings)
    expiration = timedelta(days=args.days) if args.days else settings.expiration
    report = run_maintenance(manager, expiration)
    print(
        json.dumps(
            {
                "marked": report.marked,
                "kept": report.kept,
                "mark_failures": report.mark_failures,
                "deleted": report.deleted,
                "sweep_failures": report.sweep_failures,
                "cancelled": report.cancelled,
            },
            indent=2,
        )
    )
    if not report.ok:
        raise SystemExit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="buildspace diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_records = sub.add_parser("records", help="List tracking records")
    p_records.add_argument("--json", action="store_true", help="Output JSON")
    p_records.set_defaults(func=cmd_records)

    p_pending = sub.add_parser("pending", help="List pending-deletion records")
    p_pending.set_defaults(func=cmd_pending)

    p_prepare = sub.add_parser("prepare", help="Get or create the build directory for a hash key")
    p_prepare.add_argument("--hash-key", required=True)
    p_prepare.add_argument("--definition-id", required=True)
    p_prepare.add_argument("--definition-name")
    p_prepare.add_argument("--repository-type")
    p_prepare.add_argument(
        "--force-agent-id",
        action="store_true",
        help="Use BUILDSPACE_AGENT_ID as the directory number (only on an empty workspace)",
    )
    p_prepare.set_defaults(func=cmd_prepare)

    p_mark = sub.add_parser("mark", help="Mark expired build directories for deletion")
    p_mark.add_argument("--days", type=float, default=None, help="Override the expiration window")
    p_mark.set_defaults(func=cmd_mark)

    p_sweep = sub.add_parser("sweep", help="Delete build directories pending deletion")
    p_sweep.set_defaults(func=cmd_sweep)

    p_maintain = sub.add_parser("maintain", help="Run mark and sweep in one pass")
    p_maintain.add_argument("--days", type=float, default=None)
    p_maintain.set_defaults(func=cmd_maintain)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
