from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from contractor_sync.config import AppConfig
from contractor_sync.context import AppContext, build_context
from contractor_sync.model import SyncResult
from contractor_sync.report import build_error_payload, build_report_payload, write_json_report

logger = logging.getLogger(__name__)

DEFAULT_REPORT_NAME = "contractor_sync_report.json"


async def sync_once(context: AppContext) -> SyncResult:
    """Run a single reconciliation cycle; the orchestrator (re)connects as needed."""
    return await context.orchestrator.run_cycle()


async def watch(
    context: AppContext,
    interval: float,
    stop: asyncio.Event | None = None,
    on_result: Callable[[SyncResult], Any] | None = None,
) -> None:
    """Sync every ``interval`` seconds until ``stop`` is set, then close the gateway."""
    if stop is None:
        stop = asyncio.Event()
    logger.info("Watching cloud directory every %.1fs", interval)
    try:
        await context.orchestrator.run_forever(interval, stop, on_result)
    finally:
        await context.aclose()


async def _run(config: AppConfig, context: AppContext | None) -> SyncResult:
    owned = context is None
    context = context or build_context(config)
    try:
        return await sync_once(context)
    finally:
        if owned:
            await context.aclose()


def run_contractor_sync(
    config: AppConfig,
    *,
    output_path: str | None = None,
    context: AppContext | None = None,
) -> Path:
    """Synchronise contractors with the cloud and write a JSON report of the cycle."""

    report_path = Path(output_path) if output_path else Path(DEFAULT_REPORT_NAME)

    try:
        result = asyncio.run(_run(config, context))
        payload = build_report_payload(result)
    except Exception as exc:
        logger.exception("Contractor sync crashed")
        payload = build_error_payload(str(exc))

    return write_json_report(payload, report_path)


__all__ = ["run_contractor_sync", "sync_once", "watch", "DEFAULT_REPORT_NAME"]
