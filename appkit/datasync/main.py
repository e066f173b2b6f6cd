"""
Datasync command-line entry point.

Usage:
    datasync status
    datasync sources
    datasync activate npoint --set endpointId=abc
    datasync test githubRepo --set owner=me --set repo=data
    datasync read items
    datasync write items '[{"id": 1}]'
    datasync query "SELECT * FROM users"
    datasync push --set token=...
    datasync pull
    datasync import-db backup.db
    datasync export-db ./exports/

Configuration is via ``DATASYNC_`` environment variables; see config.py.
Output is JSON on stdout, logs go to stderr.

Invariants:
    - Any DataSyncError ends the process with exit code 1
    - Commands that need the database run auto-discovery first
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sqlite3
import sys
from dataclasses import asdict
from typing import Any, Dict, List, Optional

import json_log_formatter

from .config import Settings
from .context import AppContext
from .errors import DataSyncError
from .sources.registry import list_descriptors

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    """Configure root logging from settings.

    Args:
        settings: Datasync configuration
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Request lines would include tokenized URLs at DEBUG
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def parse_assignments(values: Optional[List[str]]) -> Dict[str, str]:
    """``["a=1", "b=2"]`` -> ``{"a": "1", "b": "2"}``."""
    config: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected key=value, got '{item}'")
        config[key.strip()] = value
    return config


def emit(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run_command(args: argparse.Namespace, app: AppContext) -> int:
    """Execute one parsed command against app; returns the exit code."""
    command = args.command
    config = parse_assignments(getattr(args, "set", None))

    if command == "status":
        outcome = await app.bootstrap()
        emit(
            {
                "app_id": app.settings.app_id,
                "active_source": app.manager.active_source,
                "configured_sources": app.manager.configured_sources(),
                "location": app.locations.active_location,
                "bootstrap": outcome.value,
                "snapshot": app.snapshots.stats,
                "users": asdict(app.users.app_status()),
            }
        )
        return 0

    if command == "sources":
        emit(
            [
                {**d.to_dict(), "active": d.id == app.manager.active_source}
                for d in list_descriptors()
            ]
        )
        return 0

    if command == "test":
        result = await app.manager.test_connection(args.source, config)
        emit(result.to_dict())
        return 0 if result.success else 1

    if command == "activate":
        result = await app.manager.activate(args.source, config, test=not args.no_test)
        emit(result.to_dict())
        return 0 if result.success else 1

    if command == "read":
        emit(await app.manager.read(args.key))
        return 0

    if command == "write":
        value = json.loads(args.value)
        ok = await app.manager.write(args.key, value)
        emit({"success": ok})
        return 0 if ok else 1

    if command == "query":
        await app.bootstrap()
        result = (
            app.snapshots.execute_script(args.sql)
            if args.script
            else app.snapshots.execute(args.sql)
        )
        emit(
            {
                "columns": result.columns,
                "rows": [list(row) for row in result.rows],
                "rows_affected": result.rows_affected,
            }
        )
        return 0

    if command == "history":
        if args.clear:
            app.history.clear()
        emit([asdict(entry) for entry in app.history.recent()])
        return 0

    if command == "push":
        await app.bootstrap()
        location = {**app.snapshots.resolve_location()[0], **config}
        new_hash = await app.snapshots.push_remote(location, expected_hash=args.expected_hash)
        emit({"sha": new_hash})
        return 0

    if command == "pull":
        remote = await app.snapshots.pull_remote(config or None)
        emit({"file": str(remote.handle), "sha": remote.content_hash, "tables": app.snapshots.tables()})
        return 0

    if command == "bootstrap":
        outcome = await app.bootstrap()
        emit({"outcome": outcome.value, "tables": app.snapshots.tables()})
        return 0

    if command == "import-db":
        app.snapshots.load_file(args.path)
        emit({"tables": app.snapshots.tables()})
        return 0

    if command == "export-db":
        await app.bootstrap()
        emit({"path": str(app.snapshots.save_file(args.path))})
        return 0

    if command == "locations":
        if args.test:
            result = await app.locations.test_location(args.test, config)
            emit(result.to_dict())
            return 0 if result.success else 1
        if args.activate:
            app.locations.activate_location(args.activate, config or None)
        emit(
            [
                {
                    "id": loc.id,
                    "name": loc.name,
                    "fields": list(loc.config_fields),
                    "active": loc.id == app.locations.active_location,
                }
                for loc in app.locations.list_locations()
            ]
        )
        return 0

    raise ValueError(f"Unknown command: {command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pluggable storage synchronization tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def with_config(sub: argparse.ArgumentParser) -> argparse.ArgumentParser:
        sub.add_argument(
            "--set", action="append", metavar="KEY=VALUE", help="Configuration field (repeatable)"
        )
        return sub

    subparsers.add_parser("status", help="Show active source, location and database state")
    subparsers.add_parser("sources", help="List available data sources")

    test_parser = with_config(subparsers.add_parser("test", help="Probe a source config"))
    test_parser.add_argument("source", help="Source id")

    activate_parser = with_config(
        subparsers.add_parser("activate", help="Configure and activate a source")
    )
    activate_parser.add_argument("source", help="Source id")
    activate_parser.add_argument(
        "--no-test", action="store_true", help="Activate without probing first"
    )

    read_parser = subparsers.add_parser("read", help="Read a key from the active source")
    read_parser.add_argument("key")

    write_parser = subparsers.add_parser("write", help="Write JSON to the active source")
    write_parser.add_argument("key")
    write_parser.add_argument("value", help="JSON value")

    query_parser = subparsers.add_parser("query", help="Run SQL against the embedded database")
    query_parser.add_argument("sql")
    query_parser.add_argument("--script", action="store_true", help="Run several statements")

    history_parser = subparsers.add_parser("history", help="Show recent queries")
    history_parser.add_argument("--clear", action="store_true", help="Clear history first")

    push_parser = with_config(subparsers.add_parser("push", help="Commit database to remote"))
    push_parser.add_argument("--expected-hash", help="Hash believed current on the remote")

    with_config(subparsers.add_parser("pull", help="Replace database with the remote copy"))
    subparsers.add_parser("bootstrap", help="Run auto-discovery")

    import_parser = subparsers.add_parser("import-db", help="Load a .db file")
    import_parser.add_argument("path")

    export_parser = subparsers.add_parser("export-db", help="Write the database to a file")
    export_parser.add_argument("path", help="File or directory")

    locations_parser = with_config(subparsers.add_parser("locations", help="Database locations"))
    group = locations_parser.add_mutually_exclusive_group()
    group.add_argument("--test", metavar="LOCATION", help="Probe a location config")
    group.add_argument("--activate", metavar="LOCATION", help="Make a location active")

    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    async with AppContext.from_settings(settings) as app:
        return await run_command(args, app)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    setup_logging(settings)
    settings.log_config()

    try:
        code = asyncio.run(_run(args, settings))
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except json.JSONDecodeError as e:
        print(f"Invalid JSON value: {e}", file=sys.stderr)
        sys.exit(1)
    except DataSyncError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        sys.exit(1)
    except sqlite3.Error as e:
        print(f"SQL error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
