"""Reconciliation of two contractor lists.

Two policies exist and they are deliberately kept apart:

``merge_by_id``
    Cloud path. Remote records always win on an id collision; local records
    with a fresh id are added unless their name (case-insensitively) is
    already taken by a kept record. Output is sorted by id. The function is
    not commutative, so the authoritative copy must be passed as ``remote``.

``merge_by_name``
    Device-to-device exchange path. Concatenates ``first`` then ``second`` and
    keeps the first record seen for each exact (case-sensitive) name. Ids are
    not reconciled; callers must re-identify records before storing them.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Sequence, Tuple

from contractor_sync.model import Conflict, Contractor


def merge_by_id_with_conflicts(
    local: Sequence[Contractor], remote: Sequence[Contractor]
) -> Tuple[List[Contractor], List[Conflict]]:
    """Merge and also return the local records that were discarded."""
    merged: Dict[int, Contractor] = {}
    taken_names: Dict[str, int] = {}

    for contractor in sorted(remote, key=lambda c: c.id):
        if contractor.id in merged or contractor.name_key in taken_names:
            continue  # The remote copy itself repeats a record; first by id wins
        merged[contractor.id] = replace(contractor)
        taken_names[contractor.name_key] = contractor.id

    conflicts: List[Conflict] = []
    for contractor in local:
        if contractor.id in merged:
            kept = merged[contractor.id]
            if kept.name_key != contractor.name_key:
                conflicts.append(
                    Conflict(contractor.id, contractor.name, kept.name, "id_collision")
                )
            continue
        if contractor.name_key in taken_names:
            kept = merged[taken_names[contractor.name_key]]
            conflicts.append(
                Conflict(contractor.id, contractor.name, kept.name, "name_collision")
            )
            continue
        merged[contractor.id] = replace(contractor)
        taken_names[contractor.name_key] = contractor.id

    return sorted(merged.values(), key=lambda c: c.id), conflicts


def merge_by_id(local: Sequence[Contractor], remote: Sequence[Contractor]) -> List[Contractor]:
    """Cloud-wins merge keyed by contractor id."""
    merged, _ = merge_by_id_with_conflicts(local, remote)
    return merged


def merge_by_name(first: Iterable[Contractor], second: Iterable[Contractor]) -> List[Contractor]:
    """First-seen-wins merge keyed by exact contractor name."""
    seen: Dict[str, Contractor] = {}
    for contractor in [*first, *second]:
        if contractor.name not in seen:
            seen[contractor.name] = replace(contractor)
    return list(seen.values())


__all__ = ["merge_by_id", "merge_by_id_with_conflicts", "merge_by_name"]
