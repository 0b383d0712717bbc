"""Append-only ledger of numbered reports.

Numbers are assigned read-increment-persist with no cross-process locking;
each device owns its ledger, so nothing else ever writes the counter.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Dict, Iterable, List

from contractor_sync.errors import StorageError, ValidationError
from contractor_sync.model import Contractor, Report, ScanSession, utc_now
from contractor_sync.payload import iso_timestamp, report_from_dict, report_to_dict
from contractor_sync.store import (
    REPORT_COUNTER_KEY,
    REPORTS_KEY,
    SENT_LOG_KEY,
    KeyValueStore,
    read_json,
    write_json,
)

logger = logging.getLogger(__name__)


class ReportLedger:
    def __init__(self, store: KeyValueStore, *, clock: Callable = utc_now) -> None:
        self._store = store
        self._clock = clock
        self._reports: List[Report] = self._load_reports()
        self._sent: Dict[int, str] = self._load_sent_log()
        self._next_number: int = self._load_counter()

    def _load_reports(self) -> List[Report]:
        try:
            raw = read_json(self._store, REPORTS_KEY) or []
            reports = [report_from_dict(item) for item in raw]
        except (StorageError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Stored reports unreadable, starting empty: %s", exc)
            return []
        return sorted(reports, key=lambda r: r.sequential_number, reverse=True)

    def _load_sent_log(self) -> Dict[int, str]:
        try:
            raw = read_json(self._store, SENT_LOG_KEY) or []
            return {int(item["sequentialNumber"]): str(item["sentAt"]) for item in raw}
        except (StorageError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Sent-session log unreadable, starting empty: %s", exc)
            return {}

    def _load_counter(self) -> int:
        highest = max((r.sequential_number for r in self._reports), default=0)
        try:
            stored = read_json(self._store, REPORT_COUNTER_KEY)
        except StorageError as exc:
            logger.warning("Report counter unreadable: %s", exc)
            stored = None
        if isinstance(stored, int) and not isinstance(stored, bool) and stored > highest:
            return stored
        return highest + 1

    @property
    def next_number(self) -> int:
        return self._next_number

    def save(self, session: ScanSession, contractors: Iterable[Contractor]) -> Report:
        """Freeze ``session`` into the next numbered report and persist it."""
        snapshot = tuple(replace(c) for c in contractors)
        if not session.scanned_codes:
            raise ValidationError("Cannot create a report without scanned codes")
        if not snapshot:
            raise ValidationError("Cannot create a report without contractors")

        number = self._next_number
        report = Report(
            sequential_number=number,
            contractors=snapshot,
            codes=tuple(session.scanned_codes),
            submitted_at=self._clock(),
            session_id=session.id,
        )
        reports = [report] + self._reports

        self._reports = reports
        self._next_number = number + 1
        write_json(self._store, REPORTS_KEY, [report_to_dict(r) for r in reports])
        write_json(self._store, REPORT_COUNTER_KEY, self._next_number)
        logger.info(
            "Report #%d saved with %d codes for %s",
            number,
            len(report.codes),
            report.contractor_names,
        )
        return self._with_status(report)

    def _with_status(self, report: Report) -> Report:
        """Detached copy of a stored report with its delivery status applied."""
        status = "sent" if report.sequential_number in self._sent else report.status
        return replace(
            report, contractors=tuple(replace(c) for c in report.contractors), status=status
        )

    def list(self) -> List[Report]:
        """All reports, most recent first."""
        return [self._with_status(r) for r in self._reports]

    def get(self, sequential_number: int) -> Report | None:
        for report in self._reports:
            if report.sequential_number == sequential_number:
                return self._with_status(report)
        return None

    def mark_sent(self, sequential_number: int) -> bool:
        """Record that a report was delivered; ``False`` if the number is unknown."""
        if self.get(sequential_number) is None:
            return False
        if sequential_number in self._sent:
            return True
        sent = dict(self._sent)
        sent[sequential_number] = iso_timestamp(self._clock())
        self._sent = sent
        write_json(
            self._store,
            SENT_LOG_KEY,
            [
                {"sequentialNumber": number, "sentAt": sent_at}
                for number, sent_at in sorted(sent.items())
            ],
        )
        logger.info("Report #%d marked as sent", sequential_number)
        return True

    def __len__(self) -> int:
        return len(self._reports)


__all__ = ["ReportLedger"]
