"""Domain models for contractor synchronisation and scan reporting.

These dataclasses represent the core entities shared throughout the tool:
contractors, scanned codes, the active scan session, frozen reports, and the
aggregate comparison/sync outcomes.
"""

from __future__ import annotations  # Postponed evaluation of annotations (PEP 563)

from dataclasses import dataclass, field  # Dataclass utilities
from datetime import datetime, timezone
from typing import Literal  # Constrained string types for clarity

ReportStatus = Literal["pending", "sent"]  # Delivery state of a Report
ConflictReason = Literal[
    "id_collision", "name_collision"
]  # Why a local record was discarded during a merge
SyncOutcome = Literal[
    "disabled", "offline", "bootstrapped", "merged", "failed"
]  # Result of one orchestrator cycle

DEFAULT_CATEGORY = "Общая категория"  # Fallback label for contractors without one


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Contractor:
    """A business partner that scans are attributed to."""

    id: int  # Unique within a directory, assigned as max + 1
    name: str  # Non-empty, case-insensitively unique
    category: str = DEFAULT_CATEGORY
    created_at: datetime = field(default_factory=utc_now)  # Never mutated
    updated_at: datetime | None = None
    device_id: str | None = None  # Device that created the record

    @property
    def name_key(self) -> str:
        """Case-insensitive identity used for uniqueness checks."""
        return self.name.strip().casefold()

    def __str__(self) -> str:
        return f"contractor(id={self.id}, name={self.name}, category={self.category})"


@dataclass(frozen=True, slots=True)
class ScannedCode:
    """One scan captured during a session."""

    code: str  # Opaque payload, not validated
    timestamp: datetime


@dataclass(slots=True)
class ScanSession:
    """The single in-progress batch of scans."""

    id: str
    contractor_ids: list[int]  # Ordered, no duplicates
    scanned_codes: list[ScannedCode] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime | None = None

    def has_code(self, code: str) -> bool:
        return any(entry.code == code for entry in self.scanned_codes)


@dataclass(frozen=True, slots=True)
class Report:
    """Immutable, numbered snapshot produced by closing a session."""

    sequential_number: int
    contractors: tuple[Contractor, ...]  # Copies taken at save time
    codes: tuple[ScannedCode, ...]
    submitted_at: datetime
    session_id: str
    status: ReportStatus = "pending"

    @property
    def contractor_names(self) -> str:
        return ", ".join(c.name for c in self.contractors)


@dataclass(slots=True)
class Conflict:
    """Describes a local record discarded in favour of the remote copy."""

    contractor_id: int  # Id of the discarded local record
    local_name: str
    remote_name: str
    reason: ConflictReason


@dataclass(slots=True)
class ComparisonReport:
    """Groups comparison outcomes for later processing."""

    local_only: list[Contractor] = field(default_factory=list)  # Missing remotely
    remote_only: list[Contractor] = field(default_factory=list)  # Missing locally
    conflicts: list[Conflict] = field(default_factory=list)  # Same id, different name
    matching_count: int = 0  # Same id and same name


@dataclass(slots=True)
class SyncResult:
    """Outcome of a single reconciliation cycle."""

    outcome: SyncOutcome
    local_count: int = 0
    remote_count: int = 0
    merged_count: int = 0
    added_from_remote: list[Contractor] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    comparison: ComparisonReport | None = None  # Local vs cloud before merging
    error: str | None = None
    finished_at: datetime = field(default_factory=utc_now)

    @property
    def ok(self) -> bool:
        return self.outcome in ("bootstrapped", "merged")


@dataclass(slots=True)
class ImportSummary:
    """Counts reported back by bulk imports."""

    imported_count: int = 0
    skipped_count: int = 0
    updated_count: int = 0


__all__ = [
    "Contractor",
    "ScannedCode",
    "ScanSession",
    "Report",
    "Conflict",
    "ComparisonReport",
    "SyncResult",
    "ImportSummary",
    "ReportStatus",
    "ConflictReason",
    "SyncOutcome",
    "DEFAULT_CATEGORY",
    "utc_now",
]
