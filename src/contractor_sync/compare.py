from __future__ import annotations
from typing import Dict, Iterable

from contractor_sync.model import Contractor, Conflict, ComparisonReport


def compare_contractors(
    local_contractors: Iterable[Contractor],
    remote_contractors: Iterable[Contractor],
) -> ComparisonReport:
    """Compare local and remote contractors by id and detect discrepancies."""

    local_by_id: Dict[int, Contractor] = {c.id: c for c in local_contractors}
    remote_by_id: Dict[int, Contractor] = {c.id: c for c in remote_contractors}

    # Contractors with matching id on both sides
    mutual_ids = sorted(local_by_id.keys() & remote_by_id.keys())

    # Conflicts: same id but different names
    conflicts: list[Conflict] = []
    matching_count = 0
    for cid in mutual_ids:
        local_c = local_by_id[cid]
        remote_c = remote_by_id[cid]
        if local_c.name_key == remote_c.name_key:
            matching_count += 1
            continue
        conflicts.append(
            Conflict(
                contractor_id=cid,
                local_name=local_c.name,
                remote_name=remote_c.name,
                reason="id_collision",
            )
        )

    # Only on this device
    local_only = [c for cid, c in sorted(local_by_id.items()) if cid not in remote_by_id]

    # Only in the cloud copy
    remote_only = [c for cid, c in sorted(remote_by_id.items()) if cid not in local_by_id]

    return ComparisonReport(
        local_only=local_only,
        remote_only=remote_only,
        conflicts=conflicts,
        matching_count=matching_count,
    )


__all__ = ["compare_contractors"]
