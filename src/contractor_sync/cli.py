"""Command-line interface for the contractor directory, scan sessions and sync."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, Dict

from contractor_sync.config import AppConfig, load_config
from contractor_sync.context import AppContext, build_context
from contractor_sync.errors import ContractorSyncError, DuplicateCodeError
from contractor_sync.excel_reader import extract_contractor_rows
from contractor_sync.exchange import (
    export_data,
    export_exchange_payload,
    import_exchange_payload,
)
from contractor_sync.model import SyncResult
from contractor_sync.report import build_report_payload, write_json_report
from contractor_sync.runner import sync_once, watch

Handler = Callable[[AppContext, argparse.Namespace], int]


def _emit(text: str, output: str | None = None) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        print(f"Written to {output}")
    else:
        print(text, end="" if text.endswith("\n") else "\n")


def _cmd_list(ctx: AppContext, args: argparse.Namespace) -> int:
    contractors = ctx.directory.search(args.search) if args.search else ctx.directory.all()
    for c in contractors:
        print(f"{c.id:>4}  {c.name}  [{c.category}]")
    return 0


def _cmd_add(ctx: AppContext, args: argparse.Namespace) -> int:
    contractor = ctx.directory.add(args.name, args.category)
    print(f"Added contractor {contractor.id}: {contractor.name}")
    return 0


def _cmd_update(ctx: AppContext, args: argparse.Namespace) -> int:
    if not ctx.directory.update(args.id, args.name, args.category):
        print(f"Contractor {args.id} not found", file=sys.stderr)
        return 1
    print(f"Updated contractor {args.id}")
    return 0


def _cmd_remove(ctx: AppContext, args: argparse.Namespace) -> int:
    removed = ctx.directory.remove(args.id)
    print(f"Removed contractor {args.id}" if removed else f"Contractor {args.id} not found")
    return 0


def _cmd_import_csv(ctx: AppContext, args: argparse.Namespace) -> int:
    text = Path(args.file).read_text(encoding="utf-8-sig")
    summary = ctx.directory.import_delimited_text(text, skip_first_row=args.skip_first_row)
    print(f"Imported {summary.imported_count}, skipped {summary.skipped_count}")
    return 0


def _cmd_export_csv(ctx: AppContext, args: argparse.Namespace) -> int:
    _emit(ctx.directory.export_delimited_text(), args.output)
    return 0


def _cmd_import_excel(ctx: AppContext, args: argparse.Namespace) -> int:
    rows = extract_contractor_rows(Path(args.workbook))
    summary = ctx.directory.import_rows(rows)
    print(f"Imported {summary.imported_count}, skipped {summary.skipped_count}")
    return 0


def _cmd_export_payload(ctx: AppContext, args: argparse.Namespace) -> int:
    _emit(export_exchange_payload(ctx.directory), args.output)
    return 0


def _cmd_import_payload(ctx: AppContext, args: argparse.Namespace) -> int:
    text = Path(args.file).read_text(encoding="utf-8")
    summary = import_exchange_payload(text, ctx.directory)
    print(
        f"Imported {summary.imported_count}, updated {summary.updated_count}, "
        f"skipped {summary.skipped_count}"
    )
    return 0


def _cmd_export_data(ctx: AppContext, args: argparse.Namespace) -> int:
    _emit(export_data(ctx.directory, ctx.ledger, ctx.sessions, ctx.device_id), args.output)
    return 0


def _cmd_scan_start(ctx: AppContext, args: argparse.Namespace) -> int:
    session = ctx.sessions.start(args.contractor_ids)
    print(f"Started {session.id}")
    return 0


def _cmd_scan(ctx: AppContext, args: argparse.Namespace) -> int:
    try:
        ctx.sessions.add_code(args.code)
    except DuplicateCodeError:
        print("Warning: this code was already scanned", file=sys.stderr)
        return 0
    requirements = ctx.sessions.requirements()
    session = ctx.sessions.current
    count = len(session.scanned_codes) if session else 0
    suffix = " (enough codes)" if requirements["has_enough_codes"] else ""
    print(f"Code added ({count} scanned){suffix}")
    return 0


def _cmd_unscan(ctx: AppContext, args: argparse.Namespace) -> int:
    removed = ctx.sessions.remove_code(args.code)
    print(f"Removed {removed} code(s)")
    return 0


def _cmd_session(ctx: AppContext, args: argparse.Namespace) -> int:
    session = ctx.sessions.current
    if session is None:
        print("No active session")
        return 0
    names = ", ".join(c.name for c in ctx.directory.get_many(session.contractor_ids))
    print(f"Session {session.id} for {names or '-'}")
    for entry in session.scanned_codes:
        print(f"  {entry.timestamp.isoformat()}  {entry.code}")
    return 0


def _cmd_clear_session(ctx: AppContext, args: argparse.Namespace) -> int:
    ctx.sessions.clear()
    print("Session cleared")
    return 0


def _cmd_close_session(ctx: AppContext, args: argparse.Namespace) -> int:
    report = ctx.sessions.close()
    print(f"Report #{report.sequential_number} saved with {len(report.codes)} codes")
    return 0


def _cmd_reports(ctx: AppContext, args: argparse.Namespace) -> int:
    for report in ctx.ledger.list():
        print(
            f"#{report.sequential_number}  {report.submitted_at.isoformat()}  "
            f"{report.status:<7}  {len(report.codes):>4} codes  {report.contractor_names}"
        )
    return 0


def _cmd_mark_sent(ctx: AppContext, args: argparse.Namespace) -> int:
    if not ctx.ledger.mark_sent(args.number):
        print(f"Report #{args.number} not found", file=sys.stderr)
        return 1
    print(f"Report #{args.number} marked as sent")
    return 0


async def _sync_and_close(ctx: AppContext):
    try:
        return await sync_once(ctx)
    finally:
        await ctx.aclose()


def _print_sync_result(result: SyncResult) -> None:
    print(
        f"Sync {result.outcome}: local {result.local_count}, cloud {result.remote_count}, "
        f"result {result.merged_count}"
    )


def _cmd_sync(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.watch:
        interval = args.interval if args.interval is not None else ctx.sync_interval
        try:
            asyncio.run(watch(ctx, interval, on_result=_print_sync_result))
        except KeyboardInterrupt:
            print("Stopped watching")
        return 0

    result = asyncio.run(_sync_and_close(ctx))
    if args.output:
        write_json_report(build_report_payload(result), Path(args.output))
    _print_sync_result(result)
    return 0 if result.outcome != "failed" else 1


def _cmd_sync_status(ctx: AppContext, args: argparse.Namespace) -> int:
    status = ctx.orchestrator.status()
    status["device_id"] = ctx.device_id
    status["reports_count"] = len(ctx.ledger)
    for key, value in status.items():
        print(f"{key}: {value}")
    return 0


def _cmd_sync_toggle(ctx: AppContext, args: argparse.Namespace) -> int:
    enabled = ctx.orchestrator.set_enabled(args.command == "sync-enable")
    print(f"Cloud sync {'enabled' if enabled else 'disabled'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage contractors, scan sessions and reports, and sync with the cloud"
    )
    parser.add_argument("--data-file", help="JSON file holding this device's data")
    parser.add_argument("--cloud-url", help="Base URL of the shared contractor directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable info logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List contractors")
    p.add_argument("--search", help="Only contractors matching every term")
    p = sub.add_parser("add", help="Add a contractor")
    p.add_argument("name")
    p.add_argument("--category")
    p = sub.add_parser("update", help="Rename or recategorise a contractor")
    p.add_argument("id", type=int)
    p.add_argument("name")
    p.add_argument("--category")
    p = sub.add_parser("remove", help="Delete a contractor")
    p.add_argument("id", type=int)

    p = sub.add_parser("import-csv", help="Import contractors from comma-separated text")
    p.add_argument("file")
    p.add_argument(
        "--skip-first-row",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Force (or prevent) skipping the first row instead of detecting a header",
    )
    p = sub.add_parser("export-csv", help="Export contractors as comma-separated text")
    p.add_argument("--output")
    p = sub.add_parser("import-excel", help="Import the 'contractors' worksheet of a workbook")
    p.add_argument("workbook")
    p = sub.add_parser("export-payload", help="Export the device exchange payload")
    p.add_argument("--output")
    p = sub.add_parser("import-payload", help="Import a device exchange payload")
    p.add_argument("file")
    p = sub.add_parser("export-data", help="Back up all data on this device")
    p.add_argument("--output")

    p = sub.add_parser("scan-start", help="Start a scan session")
    p.add_argument("contractor_ids", type=int, nargs="+")
    p = sub.add_parser("scan", help="Add a scanned code to the session")
    p.add_argument("code")
    p = sub.add_parser("unscan", help="Remove a scanned code from the session")
    p.add_argument("code")
    sub.add_parser("session", help="Show the active session")
    sub.add_parser("clear-session", help="Discard the active session")
    sub.add_parser("close-session", help="Save the session as a numbered report")

    sub.add_parser("reports", help="List reports, most recent first")
    p = sub.add_parser("mark-sent", help="Record that a report was sent")
    p.add_argument("number", type=int)

    p = sub.add_parser("sync", help="Run one sync cycle with the cloud directory")
    p.add_argument("--output", help="Optional JSON report path")
    p.add_argument(
        "--watch", action="store_true", help="Keep syncing on a timer until interrupted"
    )
    p.add_argument(
        "--interval", type=float, help="Seconds between cycles with --watch (default from config)"
    )
    sub.add_parser("sync-status", help="Show sync status")
    sub.add_parser("sync-enable", help="Enable cloud sync")
    sub.add_parser("sync-disable", help="Disable cloud sync")
    return parser


COMMANDS: Dict[str, Handler] = {
    "list": _cmd_list,
    "add": _cmd_add,
    "update": _cmd_update,
    "remove": _cmd_remove,
    "import-csv": _cmd_import_csv,
    "export-csv": _cmd_export_csv,
    "import-excel": _cmd_import_excel,
    "export-payload": _cmd_export_payload,
    "import-payload": _cmd_import_payload,
    "export-data": _cmd_export_data,
    "scan-start": _cmd_scan_start,
    "scan": _cmd_scan,
    "unscan": _cmd_unscan,
    "session": _cmd_session,
    "clear-session": _cmd_clear_session,
    "close-session": _cmd_close_session,
    "reports": _cmd_reports,
    "mark-sent": _cmd_mark_sent,
    "sync": _cmd_sync,
    "sync-status": _cmd_sync_status,
    "sync-enable": _cmd_sync_toggle,
    "sync-disable": _cmd_sync_toggle,
}


def main(argv: list[str] | None = None, *, context: AppContext | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config: AppConfig = load_config()
    if args.data_file:
        config.data_file = Path(args.data_file)
    if args.cloud_url:
        config.cloud_url = args.cloud_url
    logging.basicConfig(
        level=logging.INFO if args.verbose else config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ctx = context or build_context(config)
    try:
        return COMMANDS[args.command](ctx, args)
    except (ContractorSyncError, FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
