"""Startup/periodic reconciliation of the local directory with the cloud copy.

A cycle is: reconnect if the gateway dropped, read local, pull remote, merge
(remote wins), push, then write locally. Local data is only overwritten after
the push succeeded, so a cycle that fails at any network step leaves the
device exactly as it was.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict

from contractor_sync.compare import compare_contractors
from contractor_sync.directory import ContractorDirectory
from contractor_sync.errors import StorageError, SyncError
from contractor_sync.gateway import CloudGateway
from contractor_sync.merge import merge_by_id_with_conflicts
from contractor_sync.model import SyncResult
from contractor_sync.payload import iso_timestamp
from contractor_sync.store import (
    LAST_SYNC_KEY,
    SYNC_ENABLED_KEY,
    KeyValueStore,
    read_json,
    write_json,
)

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    def __init__(
        self,
        store: KeyValueStore,
        directory: ContractorDirectory,
        gateway: CloudGateway | None,
    ) -> None:
        self._store = store
        self._directory = directory
        self.gateway = gateway
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    @property
    def enabled(self) -> bool:
        try:
            value = read_json(self._store, SYNC_ENABLED_KEY)
        except StorageError:
            return True
        return value is not False

    def set_enabled(self, enabled: bool) -> bool:
        write_json(self._store, SYNC_ENABLED_KEY, bool(enabled))
        logger.info("Cloud sync %s", "enabled" if enabled else "disabled")
        return bool(enabled)

    def toggle(self) -> bool:
        return self.set_enabled(not self.enabled)

    @property
    def last_sync(self) -> str | None:
        try:
            value = read_json(self._store, LAST_SYNC_KEY)
        except StorageError:
            return None
        return value if isinstance(value, str) else None

    def status(self) -> Dict[str, Any]:
        return {
            "is_connected": bool(self.gateway and self.gateway.is_connected),
            "sync_enabled": self.enabled,
            "last_sync": self.last_sync,
            "contractors_count": len(self._directory),
        }

    # ------------------------------------------------------------------
    async def run_cycle(self) -> SyncResult:
        """Run one reconciliation cycle; never raises for gateway failures."""
        async with self._lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> SyncResult:
        local = self._directory.all()
        if not self.enabled:
            logger.info("Cloud sync disabled, skipping cycle")
            return SyncResult(outcome="disabled", local_count=len(local))
        if self.gateway is None or not await self._ensure_connected():
            logger.info("Cloud gateway unavailable, local directory stays authoritative")
            return SyncResult(outcome="offline", local_count=len(local))

        try:
            remote = await self.gateway.pull()
        except SyncError as exc:
            logger.error("Sync aborted while pulling: %s", exc)
            return SyncResult(outcome="failed", local_count=len(local), error=str(exc))

        if not remote:
            if not await self.gateway.push(local):
                return self._failed(local, remote, "Bootstrap push to the cloud failed")
            self._mark_synced()
            logger.info("Cloud copy was empty, uploaded %d local contractors", len(local))
            return SyncResult(
                outcome="bootstrapped",
                local_count=len(local),
                merged_count=len(local),
                comparison=compare_contractors(local, remote),
            )

        merged, conflicts = merge_by_id_with_conflicts(local, remote)
        comparison = compare_contractors(local, remote)
        merged_by_id = {c.id: c for c in merged}
        added = [merged_by_id[c.id] for c in comparison.remote_only if c.id in merged_by_id]

        if not await self.gateway.push(merged):
            return self._failed(local, remote, "Push of merged directory failed")

        self._directory.replace_all(merged)
        self._mark_synced()
        logger.info(
            "Sync finished. Local: %d, cloud: %d, result: %d, conflicts: %d",
            len(local),
            len(remote),
            len(merged),
            len(conflicts),
        )
        return SyncResult(
            outcome="merged",
            local_count=len(local),
            remote_count=len(remote),
            merged_count=len(merged),
            added_from_remote=added,
            conflicts=conflicts,
            comparison=comparison,
        )

    async def _ensure_connected(self) -> bool:
        if self.gateway.is_connected:
            return True
        logger.info("Cloud gateway disconnected, reconnecting")
        return await self.gateway.connect()

    def _failed(self, local, remote, message: str) -> SyncResult:
        logger.error("Sync aborted: %s", message)
        return SyncResult(
            outcome="failed",
            local_count=len(local),
            remote_count=len(remote),
            error=message,
        )

    def _mark_synced(self) -> None:
        write_json(self._store, LAST_SYNC_KEY, iso_timestamp())

    async def run_forever(
        self,
        interval: float,
        stop: asyncio.Event,
        on_result: Callable[[SyncResult], Any] | None = None,
    ) -> None:
        """Run a cycle every ``interval`` seconds until ``stop`` is set."""
        while not stop.is_set():
            result = await self.run_cycle()
            if on_result is not None:
                on_result(result)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue


__all__ = ["SyncOrchestrator"]
