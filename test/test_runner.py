import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest
from openpyxl import Workbook

from contractor_sync import cli
from contractor_sync.config import AppConfig
from contractor_sync.context import build_context
from contractor_sync.excel_reader import extract_contractor_rows
from contractor_sync.model import ComparisonReport, Conflict, Contractor, SyncResult
from contractor_sync.report import build_error_payload, build_report_payload
from contractor_sync.runner import run_contractor_sync, watch
from contractor_sync.store import MemoryStore


# --------------------------------------------------------------------
# MODEL TESTS
# --------------------------------------------------------------------
def test_contractor_str():
    c = Contractor(id=101, name="Acme Corp")
    assert "Acme Corp" in str(c)
    assert "101" in str(c)


def test_sync_result_ok():
    assert SyncResult(outcome="merged").ok
    assert SyncResult(outcome="bootstrapped").ok
    assert not SyncResult(outcome="offline").ok


# --------------------------------------------------------------------
# EXCEL READER TESTS
# --------------------------------------------------------------------
def _workbook(path, sheet_title, rows):
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


def test_extract_contractor_rows_valid(tmp_path):
    """Rows are read by header, blanks skipped, category optional."""
    workbook_path = _workbook(
        tmp_path / "contractors.xlsx",
        "contractors",
        [["Название", "Категория"], ["Ромашка", "Дилер"], [None, "Retail"], ["Acme", None]],
    )

    rows = extract_contractor_rows(workbook_path)
    assert rows == [("Ромашка", "Дилер"), ("Acme", "")]


def test_extract_contractor_rows_missing_file():
    """Expect FileNotFoundError for invalid path."""
    with pytest.raises(FileNotFoundError):
        extract_contractor_rows(Path("nonexistent.xlsx"))


def test_extract_contractor_rows_missing_sheet(tmp_path):
    """Expect ValueError when 'contractors' worksheet not found."""
    workbook_path = _workbook(tmp_path / "bad.xlsx", "wrong_sheet", [["Name"]])
    with pytest.raises(ValueError):
        extract_contractor_rows(workbook_path)


def test_extract_contractor_rows_missing_name_column(tmp_path):
    workbook_path = _workbook(tmp_path / "bad.xlsx", "contractors", [["ID", "Category"], [1, "x"]])
    with pytest.raises(ValueError):
        extract_contractor_rows(workbook_path)


# --------------------------------------------------------------------
# REPORT TESTS
# --------------------------------------------------------------------
def test_build_report_payload_for_merge():
    result = SyncResult(
        outcome="merged",
        local_count=2,
        remote_count=3,
        merged_count=4,
        added_from_remote=[Contractor(5, "Initech", "Tech")],
        conflicts=[Conflict(2, "Globex", "Globex Cloud", "id_collision")],
        comparison=ComparisonReport(
            local_only=[Contractor(1, "Acme")],
            remote_only=[Contractor(5, "Initech", "Tech")],
            conflicts=[Conflict(2, "Globex", "Globex Cloud", "id_collision")],
            matching_count=1,
        ),
    )

    payload = build_report_payload(result)

    assert payload["status"] == "success"
    assert payload["added_from_remote"] == [{"id": 5, "name": "Initech", "category": "Tech"}]
    assert payload["conflicts"][0]["remote_name"] == "Globex Cloud"
    assert payload["error"] is None
    assert payload["comparison"]["local_only"][0]["name"] == "Acme"
    assert payload["comparison"]["remote_only"][0]["id"] == 5
    assert payload["comparison"]["conflicts"][0]["contractor_id"] == 2
    assert payload["comparison"]["matching_count"] == 1


def test_build_report_payload_status_mapping():
    offline = build_report_payload(SyncResult(outcome="offline"))
    assert offline["status"] == "skipped"
    assert offline["comparison"] is None
    assert build_report_payload(SyncResult(outcome="failed", error="x"))["status"] == "error"


def test_build_error_payload():
    payload = build_error_payload("boom")
    assert payload["status"] == "error"
    assert payload["error"] == "boom"


# --------------------------------------------------------------------
# RUNNER TESTS
# --------------------------------------------------------------------
@pytest.fixture
def context(tmp_path):
    return build_context(AppConfig(data_file=tmp_path / "store.json"), store=MemoryStore())


def test_run_contractor_sync_offline_writes_report(tmp_path, context):
    output = run_contractor_sync(
        AppConfig(), output_path=str(tmp_path / "out" / "report.json"), context=context
    )

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["outcome"] == "offline"
    assert payload["status"] == "skipped"
    assert payload["local_count"] == 4


@patch("contractor_sync.runner.sync_once")
def test_run_contractor_sync_writes_error_payload(mock_sync, tmp_path, context):
    mock_sync.side_effect = RuntimeError("cloud exploded")

    output = run_contractor_sync(
        AppConfig(), output_path=str(tmp_path / "report.json"), context=context
    )

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["status"] == "error"
    assert "cloud exploded" in payload["error"]


def test_watch_runs_cycles_until_stopped(context):
    results = []

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(watch(context, 0.01, stop, results.append))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())
    assert len(results) >= 1
    assert all(r.outcome == "offline" for r in results)


# --------------------------------------------------------------------
# CLI TESTS
# --------------------------------------------------------------------
def test_cli_add_and_list(context, capsys):
    assert cli.main(["add", "Acme", "--category", "Dealer"], context=context) == 0
    assert cli.main(["list", "--search", "acme"], context=context) == 0

    out = capsys.readouterr().out
    assert "Added contractor 5: Acme" in out
    assert "[Dealer]" in out


def test_cli_reports_validation_errors(context, capsys):
    cli.main(["add", "Acme"], context=context)
    assert cli.main(["add", "ACME"], context=context) == 1
    assert "Error:" in capsys.readouterr().err


def test_cli_scan_workflow(context, capsys):
    assert cli.main(["scan-start", "1", "2"], context=context) == 0
    assert cli.main(["scan", "ABC"], context=context) == 0
    assert cli.main(["scan", "ABC"], context=context) == 0
    assert "already scanned" in capsys.readouterr().err

    assert cli.main(["close-session"], context=context) == 0
    assert cli.main(["reports"], context=context) == 0
    out = capsys.readouterr().out
    assert "Report #1 saved with 1 codes" in out
    assert "#1" in out and "pending" in out

    assert cli.main(["mark-sent", "1"], context=context) == 0
    assert cli.main(["mark-sent", "9"], context=context) == 1
    assert context.ledger.get(1).status == "sent"


def test_cli_close_without_codes_fails(context, capsys):
    cli.main(["scan-start", "1"], context=context)
    assert cli.main(["close-session"], context=context) == 1
    assert "Error:" in capsys.readouterr().err


def test_cli_import_excel(tmp_path, context, capsys):
    workbook_path = _workbook(
        tmp_path / "c.xlsx", "contractors", [["Name", "Category"], ["Initech", "Tech"]]
    )
    assert cli.main(["import-excel", str(workbook_path)], context=context) == 0
    assert context.directory.find_by_name("Initech").category == "Tech"


def test_cli_payload_export_then_import(tmp_path, context):
    payload_path = tmp_path / "payload.json"
    assert cli.main(["export-payload", "--output", str(payload_path)], context=context) == 0

    other = build_context(AppConfig(), store=MemoryStore())
    other.directory.add("Hooli")
    assert cli.main(["import-payload", str(payload_path)], context=other) == 0
    assert len(other.directory) == 5


def test_cli_sync_toggle_and_status(context, capsys):
    assert cli.main(["sync-disable"], context=context) == 0
    assert context.orchestrator.enabled is False
    assert cli.main(["sync-status"], context=context) == 0
    out = capsys.readouterr().out
    assert "sync_enabled: False" in out
    assert f"device_id: {context.device_id}" in out


def test_cli_sync_offline(tmp_path, context, capsys):
    output = tmp_path / "sync.json"
    assert cli.main(["sync", "--output", str(output)], context=context) == 0
    assert "Sync offline" in capsys.readouterr().out
    assert json.loads(output.read_text(encoding="utf-8"))["outcome"] == "offline"


@patch("contractor_sync.cli.watch")
def test_cli_sync_watch_uses_configured_interval(mock_watch, context):
    context.sync_interval = 12.5
    assert cli.main(["sync", "--watch"], context=context) == 0
    mock_watch.assert_awaited_once()
    assert mock_watch.await_args.args[:2] == (context, 12.5)


@patch("contractor_sync.cli.watch")
def test_cli_sync_watch_interval_flag_overrides_config(mock_watch, context):
    assert cli.main(["sync", "--watch", "--interval", "0.5"], context=context) == 0
    assert mock_watch.await_args.args[1] == 0.5
