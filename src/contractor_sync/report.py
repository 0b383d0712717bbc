from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from contractor_sync.model import ComparisonReport, Conflict, Contractor, SyncResult
from contractor_sync.payload import iso_timestamp


def _serialise_conflict(conflict: Conflict) -> Dict[str, Any]:
    return {
        "contractor_id": conflict.contractor_id,
        "local_name": conflict.local_name,
        "remote_name": conflict.remote_name,
        "reason": conflict.reason,
    }


def _serialise_contractor(contractor: Contractor) -> Dict[str, Any]:
    return {
        "id": contractor.id,
        "name": contractor.name,
        "category": contractor.category,
    }


def _serialise_comparison(comparison: ComparisonReport | None) -> Dict[str, Any] | None:
    if comparison is None:
        return None
    return {
        "local_only": [_serialise_contractor(c) for c in comparison.local_only],
        "remote_only": [_serialise_contractor(c) for c in comparison.remote_only],
        "conflicts": [_serialise_conflict(c) for c in comparison.conflicts],
        "matching_count": comparison.matching_count,
    }


def _status(result: SyncResult) -> str:
    if result.ok:
        return "success"
    if result.outcome == "failed":
        return "error"
    return "skipped"  # Disabled or offline


def build_report_payload(result: SyncResult) -> Dict[str, Any]:
    """Build JSON payload describing one sync cycle."""

    return {
        "status": _status(result),
        "timestamp": iso_timestamp(result.finished_at),
        "outcome": result.outcome,
        "local_count": result.local_count,
        "remote_count": result.remote_count,
        "merged_count": result.merged_count,
        "added_from_remote": [_serialise_contractor(c) for c in result.added_from_remote],
        "conflicts": [_serialise_conflict(c) for c in result.conflicts],
        "comparison": _serialise_comparison(result.comparison),
        "error": result.error,
    }


def build_error_payload(error: str) -> Dict[str, Any]:
    return {
        "status": "error",
        "timestamp": iso_timestamp(),
        "outcome": "failed",
        "local_count": 0,
        "remote_count": 0,
        "merged_count": 0,
        "added_from_remote": [],
        "conflicts": [],
        "comparison": None,
        "error": error,
    }


def write_json_report(payload: Dict[str, Any], output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    return output_path


__all__ = [
    "build_report_payload",
    "build_error_payload",
    "write_json_report",
]
