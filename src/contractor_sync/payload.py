"""Dictionary codecs for persisted and transmitted entities.

Wire keys are camelCase so that records written by any device (or found in
the shared cloud document) round-trip unchanged.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from contractor_sync.model import (
    DEFAULT_CATEGORY,
    Contractor,
    Report,
    ScannedCode,
    ScanSession,
    utc_now,
)


def iso_timestamp(value: datetime | None = None) -> str:
    return (value or utc_now()).isoformat()


def parse_timestamp(raw: Any) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware datetime."""
    if isinstance(raw, datetime):
        parsed = raw
    elif isinstance(raw, str) and raw.strip():
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {raw!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_timestamp(raw: Any) -> datetime | None:
    if raw in (None, ""):
        return None
    return parse_timestamp(raw)


def _coerce_id(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueError(f"Invalid contractor id: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        return int(raw.strip())
    raise ValueError(f"Invalid contractor id: {raw!r}")


def contractor_to_dict(contractor: Contractor) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": contractor.id,
        "name": contractor.name,
        "category": contractor.category,
        "createdAt": iso_timestamp(contractor.created_at),
    }
    if contractor.updated_at is not None:
        data["updatedAt"] = iso_timestamp(contractor.updated_at)
    if contractor.device_id:
        data["deviceId"] = contractor.device_id
    return data


def contractor_from_dict(data: Any) -> Contractor:
    """Build a :class:`Contractor`; raises ``ValueError`` on malformed input."""
    if not isinstance(data, dict):
        raise ValueError(f"Contractor record must be an object, got {type(data).__name__}")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Contractor record has no name")
    category = data.get("category")
    created_raw = data.get("createdAt")
    return Contractor(
        id=_coerce_id(data.get("id")),
        name=name.strip(),
        category=str(category).strip() if category else DEFAULT_CATEGORY,
        created_at=parse_timestamp(created_raw) if created_raw else utc_now(),
        updated_at=_optional_timestamp(data.get("updatedAt")),
        device_id=data.get("deviceId") or None,
    )


def contractors_to_list(contractors: Iterable[Contractor]) -> List[Dict[str, Any]]:
    return [contractor_to_dict(c) for c in contractors]


def contractors_from_list(items: Iterable[Any]) -> List[Contractor]:
    return [contractor_from_dict(item) for item in items]


def code_to_dict(scanned: ScannedCode) -> Dict[str, Any]:
    return {"code": scanned.code, "timestamp": iso_timestamp(scanned.timestamp)}


def code_from_dict(data: Dict[str, Any]) -> ScannedCode:
    code = data.get("code")
    if not isinstance(code, str):
        raise ValueError("Scanned code entry has no code")
    return ScannedCode(code=code, timestamp=parse_timestamp(data.get("timestamp")))


def session_to_dict(session: ScanSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "contractorIds": list(session.contractor_ids),
        "scannedCodes": [code_to_dict(c) for c in session.scanned_codes],
        "createdAt": iso_timestamp(session.created_at),
        "updatedAt": iso_timestamp(session.updated_at) if session.updated_at else None,
    }


def session_from_dict(data: Dict[str, Any]) -> ScanSession:
    return ScanSession(
        id=str(data["id"]),
        contractor_ids=[_coerce_id(cid) for cid in data.get("contractorIds") or []],
        scanned_codes=[code_from_dict(c) for c in data.get("scannedCodes") or []],
        created_at=parse_timestamp(data.get("createdAt")),
        updated_at=_optional_timestamp(data.get("updatedAt")),
    )


def report_to_dict(report: Report) -> Dict[str, Any]:
    return {
        "sequentialNumber": report.sequential_number,
        "sessionId": report.session_id,
        "contractorName": report.contractor_names,
        "contractors": contractors_to_list(report.contractors),
        "codes": [code_to_dict(c) for c in report.codes],
        "submittedAt": iso_timestamp(report.submitted_at),
        "status": report.status,
    }


def report_from_dict(data: Dict[str, Any]) -> Report:
    status = data.get("status", "pending")
    return Report(
        sequential_number=int(data["sequentialNumber"]),
        contractors=tuple(contractors_from_list(data.get("contractors") or [])),
        codes=tuple(code_from_dict(c) for c in data.get("codes") or []),
        submitted_at=parse_timestamp(data.get("submittedAt")),
        session_id=str(data.get("sessionId", "")),
        status="sent" if status == "sent" else "pending",
    )


__all__ = [
    "iso_timestamp",
    "parse_timestamp",
    "contractor_to_dict",
    "contractor_from_dict",
    "contractors_to_list",
    "contractors_from_list",
    "code_to_dict",
    "code_from_dict",
    "session_to_dict",
    "session_from_dict",
    "report_to_dict",
    "report_from_dict",
]
