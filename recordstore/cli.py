"""Operator CLI: inspect and export record-store databases.

    recordstore config DB            resolved engine config + health check
    recordstore tables DB            user tables
    recordstore schema DB TABLE      live column -> declared type map
    recordstore dump DB TABLE        rows as JSON
    recordstore export DB TABLE OUT  rows as CSV

Output is JSON on stdout; diagnostics go to stderr as structured log lines.
"""
from __future__ import annotations
import argparse, json, sqlite3
from typing import Any, List, Optional

from . import PACKAGE_VERSION, statements
from .errors import RecordStoreError
from .logging_util import error
from .sqlite_engine import SQLiteEngine, config_dump, database_exists
from .store import RecordStore


def _json_default(value: Any):
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=_json_default))


def _attached(args) -> RecordStore:
    # inspection only: quiet, and never writes to the database
    store = RecordStore.attach(args.db, args.table, events_enabled=False, read_only=True)
    if not store.open():
        raise store.last_error or RecordStoreError(f"could not open {args.db}")
    return store


def cmd_config(args) -> int:
    _emit(config_dump(args.db))
    return 0


def cmd_tables(args) -> int:
    if not database_exists(args.db):
        raise RecordStoreError(f"Database not found: {args.db}")
    conn = SQLiteEngine(args.db).connect(write=False)
    try:
        rows = conn.execute(*statements.list_tables()).fetchall()
    finally:
        conn.close()
    _emit([row["name"] for row in rows])
    return 0


def cmd_schema(args) -> int:
    store = _attached(args)
    try:
        _emit({"table": store.table_name, "primary_key": store.primary_key, "columns": store.current_schema()})
    finally:
        store.close()
    return 0


def cmd_dump(args) -> int:
    store = _attached(args)
    try:
        _emit(store.get_all())
    finally:
        store.close()
    return 0


def cmd_export(args) -> int:
    store = _attached(args)
    try:
        rows = store.export_csv(args.out)
    finally:
        store.close()
    _emit({"path": args.out, "rows": rows})
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="recordstore", description="Inspect and export record-store databases")
    ap.add_argument("--version", action="version", version=f"%(prog)s {PACKAGE_VERSION}")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("config", help="Dump engine config and health info")
    p.add_argument("db", help="Path to SQLite database")
    p.set_defaults(func=cmd_config)

    p = sub.add_parser("tables", help="List user tables")
    p.add_argument("db", help="Path to SQLite database")
    p.set_defaults(func=cmd_tables)

    for name, func, help_text in [
        ("schema", cmd_schema, "Show the live schema of a table"),
        ("dump", cmd_dump, "Print every row of a table as JSON"),
        ("export", cmd_export, "Export a table to CSV"),
    ]:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("db", help="Path to SQLite database")
        p.add_argument("table", help="Table name")
        if name == "export":
            p.add_argument("out", help="Destination CSV file")
        p.set_defaults(func=func)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (RecordStoreError, sqlite3.Error) as e:
        error("cli_failed", command=args.command, error=str(e), error_type=type(e).__name__)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
