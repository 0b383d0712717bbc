"""Contractor directory: identity, CRUD, bulk import and default seeding.

Every mutation persists the full list immediately through the store adapter.
A failed write is logged and the in-memory list stays authoritative until the
next successful write.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Sequence, Tuple

from contractor_sync import delimited
from contractor_sync.errors import StorageError, ValidationError
from contractor_sync.model import DEFAULT_CATEGORY, Contractor, ImportSummary, utc_now
from contractor_sync.payload import contractors_from_list, contractors_to_list
from contractor_sync.store import CONTRACTORS_KEY, KeyValueStore, read_json, write_json

logger = logging.getLogger(__name__)

DEFAULT_CONTRACTORS: Tuple[Tuple[str, str], ...] = (
    ('ООО "Ромашка"', "Оптовый покупатель"),
    ("ИП Иванов", "Розничная сеть"),
    ('ООО "Луч"', "Дилер"),
    ('АО "Вектор"', "Партнер"),
)


def _name_key(name: str) -> str:
    return name.strip().casefold()


class ContractorDirectory:
    """Owns the list of known contractors on this device."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        device_id: str | None = None,
        default_category: str = DEFAULT_CATEGORY,
        seed_defaults: bool = True,
        clock: Callable = utc_now,
    ) -> None:
        self._store = store
        self._device_id = device_id
        self._default_category = default_category
        self._clock = clock
        self._contractors: List[Contractor] = self._load(seed_defaults)

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------
    def _load(self, seed_defaults: bool) -> List[Contractor]:
        try:
            raw = read_json(self._store, CONTRACTORS_KEY)
            if raw is not None:
                if not isinstance(raw, list):
                    raise ValueError("stored contractors are not a list")
                contractors = contractors_from_list(raw)
                logger.info("Loaded %d contractors", len(contractors))
                return sorted(contractors, key=lambda c: c.id)
        except (StorageError, ValueError, KeyError) as exc:
            logger.warning("Stored contractors unreadable, starting over: %s", exc)
        if not seed_defaults:
            return []
        return self._seed()

    def _seed(self) -> List[Contractor]:
        now = self._clock()
        seeded = [
            Contractor(
                id=idx,
                name=name,
                category=category,
                created_at=now,
                updated_at=now,
                device_id=self._device_id,
            )
            for idx, (name, category) in enumerate(DEFAULT_CONTRACTORS, start=1)
        ]
        write_json(self._store, CONTRACTORS_KEY, contractors_to_list(seeded))
        logger.info("Seeded %d default contractors", len(seeded))
        return seeded

    def _commit(self, contractors: List[Contractor]) -> None:
        self._contractors = contractors
        write_json(self._store, CONTRACTORS_KEY, contractors_to_list(contractors))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def all(self) -> List[Contractor]:
        """Return copies of every contractor, ordered by id."""
        return [replace(c) for c in self._contractors]

    def get(self, contractor_id: int) -> Contractor | None:
        for contractor in self._contractors:
            if contractor.id == contractor_id:
                return replace(contractor)
        return None

    def get_many(self, contractor_ids: Iterable[int]) -> List[Contractor]:
        """Return existing contractors in the order of ``contractor_ids``."""
        by_id = {c.id: c for c in self._contractors}
        return [replace(by_id[cid]) for cid in contractor_ids if cid in by_id]

    def find_by_name(self, name: str) -> Contractor | None:
        key = _name_key(name)
        for contractor in self._contractors:
            if contractor.name_key == key:
                return replace(contractor)
        return None

    def search(self, query: str) -> List[Contractor]:
        """Contractors whose name or category contains every term of ``query``."""
        terms = [t for t in query.casefold().split() if t]
        if not terms:
            return self.all()
        return [
            replace(c)
            for c in self._contractors
            if all(t in c.name.casefold() or t in c.category.casefold() for t in terms)
        ]

    def __len__(self) -> int:
        return len(self._contractors)

    def next_id(self) -> int:
        return max((c.id for c in self._contractors), default=0) + 1

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def _validated_name(self, name: str, *, ignore_id: int | None = None) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Contractor name must not be empty")
        key = cleaned.casefold()
        for contractor in self._contractors:
            if contractor.id != ignore_id and contractor.name_key == key:
                raise ValidationError(f"Contractor already exists: {contractor.name}")
        return cleaned

    def add(self, name: str, category: str | None = None) -> Contractor:
        """Create a contractor with ``id = max(existing ids, 0) + 1``."""
        cleaned = self._validated_name(name)
        now = self._clock()
        contractor = Contractor(
            id=self.next_id(),
            name=cleaned,
            category=(category or "").strip() or self._default_category,
            created_at=now,
            updated_at=now,
            device_id=self._device_id,
        )
        self._commit(self._contractors + [contractor])
        logger.info("Added %s", contractor)
        return replace(contractor)

    def update(self, contractor_id: int, name: str, category: str | None) -> bool:
        """Rename/recategorise in place; ``False`` when the id is unknown."""
        index = next(
            (i for i, c in enumerate(self._contractors) if c.id == contractor_id), None
        )
        if index is None:
            return False
        cleaned = self._validated_name(name, ignore_id=contractor_id)
        current = self._contractors[index]
        updated = replace(
            current,
            name=cleaned,
            category=(category or "").strip() or self._default_category,
            updated_at=self._clock(),
        )
        contractors = list(self._contractors)
        contractors[index] = updated
        self._commit(contractors)
        logger.info("Updated %s", updated)
        return True

    def remove(self, contractor_id: int) -> bool:
        """Delete by id. Absent ids are not an error; returns whether one was removed."""
        remaining = [c for c in self._contractors if c.id != contractor_id]
        removed = len(remaining) != len(self._contractors)
        self._commit(remaining)
        if removed:
            logger.info("Removed contractor %d", contractor_id)
        return removed

    def replace_all(self, contractors: Sequence[Contractor]) -> None:
        """Overwrite the whole directory (used with merge output)."""
        ids = [c.id for c in contractors]
        names = [c.name_key for c in contractors]
        if len(set(ids)) != len(ids) or len(set(names)) != len(names):
            raise ValidationError("Replacement list violates id or name uniqueness")
        self._commit(sorted((replace(c) for c in contractors), key=lambda c: c.id))
        logger.info("Directory replaced with %d contractors", len(contractors))

    # ------------------------------------------------------------------
    # Bulk import / export
    # ------------------------------------------------------------------
    def import_rows(self, rows: Iterable[Sequence[str]]) -> ImportSummary:
        """Add ``(name, category)`` rows through :meth:`add`, skipping bad ones."""
        summary = ImportSummary()
        for row in rows:
            name = row[0].strip() if row else ""
            category = row[1].strip() if len(row) > 1 else ""
            if not name:
                summary.skipped_count += 1
                continue
            try:
                self.add(name, category)
            except ValidationError:
                summary.skipped_count += 1
                continue
            summary.imported_count += 1
        logger.info(
            "Import finished: %d imported, %d skipped",
            summary.imported_count,
            summary.skipped_count,
        )
        return summary

    def import_delimited_text(
        self,
        text: str,
        *,
        skip_first_row: bool | None = None,
        header_predicate: delimited.HeaderPredicate | None = None,
    ) -> ImportSummary:
        if not text or not text.strip():
            raise ValidationError("Nothing to import")
        rows = delimited.iter_rows(
            text, skip_first_row=skip_first_row, header_predicate=header_predicate
        )
        return self.import_rows(rows)

    def export_delimited_text(self) -> str:
        return delimited.format_rows((c.name, c.category) for c in self._contractors)


__all__ = ["ContractorDirectory", "DEFAULT_CONTRACTORS"]
