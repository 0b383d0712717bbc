"""Device-to-device exchange payloads (CSV, QR or clipboard carry the JSON text).

Payload shape: ``{"contractors": [...], "timestamp": ..., "version": ...}``.
Imports use the name-keyed merge: incoming records come first, so for an
exact name match the incoming category replaces the local one while the
local id is kept. Names new to this device go through the directory's add
path and receive fresh ids.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from contractor_sync.directory import ContractorDirectory
from contractor_sync.errors import PayloadImportError, ValidationError
from contractor_sync.ledger import ReportLedger
from contractor_sync.merge import merge_by_name
from contractor_sync.model import Contractor, ImportSummary
from contractor_sync.payload import (
    contractor_from_dict,
    contractors_to_list,
    iso_timestamp,
    report_to_dict,
    session_to_dict,
)
from contractor_sync.session import ScanSessionManager

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = "1.0"


def build_exchange_payload(directory: ContractorDirectory) -> Dict[str, Any]:
    return {
        "contractors": contractors_to_list(directory.all()),
        "timestamp": iso_timestamp(),
        "version": PAYLOAD_VERSION,
    }


def export_exchange_payload(directory: ContractorDirectory) -> str:
    return json.dumps(build_exchange_payload(directory), ensure_ascii=False)


def _incoming_contractors(text: str) -> list[Contractor]:
    try:
        data = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise PayloadImportError(f"Payload is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise PayloadImportError("Payload must be a JSON object")
    items = data.get("contractors")
    if not isinstance(items, list):
        raise PayloadImportError("Payload has no contractor list")

    incoming: list[Contractor] = []
    for item in items:
        try:
            incoming.append(contractor_from_dict(item))
        except ValueError as exc:
            logger.warning("Skipping malformed contractor in payload: %s", exc)
    return incoming


def import_exchange_payload(text: str, directory: ContractorDirectory) -> ImportSummary:
    """Apply a payload to ``directory``; the directory is unchanged on error."""
    incoming = _incoming_contractors(text)
    local = directory.all()
    local_by_name = {c.name: c for c in local}
    incoming_names = {c.name for c in incoming}

    summary = ImportSummary()
    for record in merge_by_name(incoming, local):
        if record.name not in incoming_names:
            continue  # Local-only record, nothing to apply
        existing = local_by_name.get(record.name)
        if existing is not None:
            if existing.category != record.category:
                directory.update(existing.id, existing.name, record.category)
                summary.updated_count += 1
            continue
        try:
            directory.add(record.name, record.category)
        except ValidationError:
            summary.skipped_count += 1  # Case-only variant of an existing name
            continue
        summary.imported_count += 1
    logger.info(
        "Exchange import: %d added, %d updated, %d skipped",
        summary.imported_count,
        summary.updated_count,
        summary.skipped_count,
    )
    return summary


def export_data(
    directory: ContractorDirectory,
    ledger: ReportLedger,
    sessions: ScanSessionManager,
    device_id: str,
) -> str:
    """Full backup of this device's data as JSON text."""
    current = sessions.current
    data = {
        "contractors": contractors_to_list(directory.all()),
        "reports": [report_to_dict(r) for r in ledger.list()],
        "currentSession": session_to_dict(current) if current else None,
        "deviceId": device_id,
        "exportDate": iso_timestamp(),
        "version": PAYLOAD_VERSION,
    }
    return json.dumps(data, ensure_ascii=False, indent=2)


__all__ = [
    "PAYLOAD_VERSION",
    "build_exchange_payload",
    "export_exchange_payload",
    "import_exchange_payload",
    "export_data",
]
