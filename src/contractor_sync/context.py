"""Explicit application context.

Built once at process start and passed to whatever needs the directory,
session or ledger; nothing in the package keeps module-level instances.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass

from contractor_sync.config import AppConfig
from contractor_sync.directory import ContractorDirectory
from contractor_sync.errors import StorageError
from contractor_sync.gateway import HttpCloudGateway, RetryPolicy
from contractor_sync.ledger import ReportLedger
from contractor_sync.orchestrator import SyncOrchestrator
from contractor_sync.session import ScanSessionManager
from contractor_sync.store import DEVICE_ID_KEY, JsonFileStore, KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)


def get_or_create_device_id(store: KeyValueStore) -> str:
    """Return the persisted device id, issuing one on first use."""
    device_id = store.get(DEVICE_ID_KEY)
    if device_id:
        return device_id
    device_id = f"device_{int(time.time() * 1000)}_{secrets.token_hex(5)}"
    try:
        store.set(DEVICE_ID_KEY, device_id)
    except StorageError as exc:
        logger.warning("Device id could not be persisted: %s", exc)
    logger.info("Issued device id %s", device_id)
    return device_id


@dataclass
class AppContext:
    store: KeyValueStore
    device_id: str
    directory: ContractorDirectory
    ledger: ReportLedger
    sessions: ScanSessionManager
    orchestrator: SyncOrchestrator
    gateway: HttpCloudGateway | None = None
    sync_interval: float = 30.0

    async def aclose(self) -> None:
        if self.gateway is not None:
            await self.gateway.aclose()


def build_context(
    config: AppConfig,
    *,
    store: KeyValueStore | None = None,
    gateway: HttpCloudGateway | None = None,
) -> AppContext:
    """Wire every component together.

    ``store`` defaults to a :class:`JsonFileStore` at ``config.data_file``; a
    store that cannot be opened degrades to memory so the device keeps
    working. A gateway is created only when a cloud URL is configured.
    """
    if store is None:
        try:
            store = JsonFileStore(config.data_file)
        except StorageError as exc:
            logger.warning("Falling back to in-memory storage: %s", exc)
            store = MemoryStore()

    device_id = get_or_create_device_id(store)
    directory = ContractorDirectory(
        store, device_id=device_id, default_category=config.default_category
    )
    ledger = ReportLedger(store)
    sessions = ScanSessionManager(store, directory, ledger)

    if gateway is None and config.cloud_enabled:
        gateway = HttpCloudGateway(
            config.cloud_url,
            config.directory_key or device_id,
            device_id=device_id,
            api_key=config.api_key,
            timeout=config.timeout,
            retry_policy=RetryPolicy(
                attempts=config.connect_attempts,
                interval=config.connect_delay,
                backoff=config.connect_backoff,
            ),
        )
    orchestrator = SyncOrchestrator(store, directory, gateway)

    return AppContext(
        store=store,
        device_id=device_id,
        directory=directory,
        ledger=ledger,
        sessions=sessions,
        orchestrator=orchestrator,
        gateway=gateway,
        sync_interval=config.sync_interval,
    )


__all__ = ["AppContext", "build_context", "get_or_create_device_id"]
