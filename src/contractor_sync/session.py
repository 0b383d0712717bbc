"""The single process-wide scan session.

State machine: ``Empty -> Active -> {Closed(Report) | Cleared} -> Empty``.
Starting a new session discards whatever the previous one held.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Sequence

from contractor_sync.directory import ContractorDirectory
from contractor_sync.errors import DuplicateCodeError, StorageError, ValidationError
from contractor_sync.ledger import ReportLedger
from contractor_sync.model import Report, ScannedCode, ScanSession, utc_now
from contractor_sync.payload import iso_timestamp, session_from_dict, session_to_dict
from contractor_sync.store import (
    SELECTED_CONTRACTORS_KEY,
    SESSION_KEY,
    KeyValueStore,
    read_json,
    write_json,
)

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


class ScanSessionManager:
    """Owns the active :class:`ScanSession` and hands it to the ledger on close."""

    def __init__(
        self,
        store: KeyValueStore,
        directory: ContractorDirectory,
        ledger: ReportLedger,
        *,
        clock: Callable = utc_now,
    ) -> None:
        self._store = store
        self._directory = directory
        self._ledger = ledger
        self._clock = clock
        self._session: ScanSession | None = self._restore()

    def _restore(self) -> ScanSession | None:
        try:
            raw = read_json(self._store, SESSION_KEY)
            if not raw:
                return None
            session = session_from_dict(raw)
        except (StorageError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Stored session unreadable, starting empty: %s", exc)
            return None

        if not session.contractor_ids:
            session.contractor_ids = self._cached_contractor_ids() or []
        known = {c.id for c in self._directory.get_many(session.contractor_ids)}
        session.contractor_ids = [cid for cid in session.contractor_ids if cid in known]
        if not session.contractor_ids and not session.scanned_codes:
            return None
        logger.info(
            "Restored session %s with %d codes and %d contractors",
            session.id,
            len(session.scanned_codes),
            len(session.contractor_ids),
        )
        return session

    def _cached_contractor_ids(self) -> List[int] | None:
        try:
            raw = read_json(self._store, SELECTED_CONTRACTORS_KEY)
        except StorageError as exc:
            logger.warning("Selected contractor cache unreadable: %s", exc)
            return None
        if not isinstance(raw, dict) or not isinstance(raw.get("contractorIds"), list):
            return None
        return [cid for cid in raw["contractorIds"] if isinstance(cid, int)]

    def _persist(self) -> None:
        if self._session is None:
            write_json(self._store, SESSION_KEY, None)
            write_json(
                self._store,
                SELECTED_CONTRACTORS_KEY,
                {"contractorIds": [], "timestamp": iso_timestamp(self._clock())},
            )
            return
        self._session.updated_at = self._clock()
        write_json(self._store, SESSION_KEY, session_to_dict(self._session))
        write_json(
            self._store,
            SELECTED_CONTRACTORS_KEY,
            {
                "contractorIds": list(self._session.contractor_ids),
                "timestamp": iso_timestamp(self._clock()),
            },
        )

    # ------------------------------------------------------------------
    @property
    def current(self) -> ScanSession | None:
        """A copy of the active session, or ``None`` when empty."""
        if self._session is None:
            return None
        return replace(
            self._session,
            contractor_ids=list(self._session.contractor_ids),
            scanned_codes=list(self._session.scanned_codes),
        )

    @property
    def is_active(self) -> bool:
        return self._session is not None

    def _require_active(self) -> ScanSession:
        if self._session is None:
            raise ValidationError("No active scan session")
        return self._session

    def start(self, contractor_ids: Sequence[int]) -> ScanSession:
        ordered: List[int] = list(dict.fromkeys(contractor_ids))
        if not ordered:
            raise ValidationError("Select at least one contractor to start a session")
        missing = [cid for cid in ordered if self._directory.get(cid) is None]
        if missing:
            raise ValidationError(f"Unknown contractor ids: {missing}")
        if self._session is not None and self._session.scanned_codes:
            logger.warning(
                "Discarding %d unsaved codes from session %s",
                len(self._session.scanned_codes),
                self._session.id,
            )
        now = self._clock()
        self._session = ScanSession(
            id=new_session_id(), contractor_ids=ordered, created_at=now, updated_at=now
        )
        self._persist()
        logger.info("Started session %s for contractors %s", self._session.id, ordered)
        return self.current

    def add_code(self, code: str) -> ScannedCode:
        session = self._require_active()
        if not code or not code.strip():
            raise ValidationError("Scanned code is empty")
        if session.has_code(code):
            raise DuplicateCodeError(code)
        scanned = ScannedCode(code=code, timestamp=self._clock())
        session.scanned_codes = session.scanned_codes + [scanned]
        self._persist()
        logger.debug("Code added to %s (%d total)", session.id, len(session.scanned_codes))
        return scanned

    def remove_code(self, code: str) -> int:
        """Drop every entry equal to ``code``; returns how many were removed."""
        if self._session is None:
            return 0
        kept = [entry for entry in self._session.scanned_codes if entry.code != code]
        removed = len(self._session.scanned_codes) - len(kept)
        if removed:
            self._session.scanned_codes = kept
            self._persist()
        return removed

    def has_code(self, code: str) -> bool:
        return self._session is not None and self._session.has_code(code)

    def clear(self) -> None:
        if self._session is not None:
            logger.info("Cleared session %s", self._session.id)
        self._session = None
        self._persist()

    def requirements(self) -> Dict[str, bool]:
        """Readiness hints for closing the session."""
        codes = len(self._session.scanned_codes) if self._session else 0
        contractors = (
            len(self._directory.get_many(self._session.contractor_ids))
            if self._session
            else 0
        )
        return {
            "has_contractors": contractors > 0,
            "has_codes": codes > 0,
            "has_enough_codes": contractors > 0 and codes >= contractors,
            "all_met": contractors > 0 and codes > 0 and codes >= contractors,
        }

    def close(self) -> Report:
        """Freeze the session into a report and reset to empty."""
        session = self._require_active()
        if not session.scanned_codes:
            raise ValidationError("Cannot close a session without scanned codes")
        contractors = self._directory.get_many(session.contractor_ids)
        if not contractors:
            raise ValidationError("None of the session's contractors exist any more")
        report = self._ledger.save(self.current, contractors)
        self.clear()
        return report


__all__ = ["ScanSessionManager", "new_session_id"]
