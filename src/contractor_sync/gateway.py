"""Cloud gateway for the shared contractor directory.

The orchestrator depends only on :class:`CloudGateway`. ``HttpCloudGateway``
stores the directory as one JSON document per directory key on a REST
endpoint and talks to it with ``httpx``.
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, List, Protocol

import httpx

from contractor_sync.errors import SyncError
from contractor_sync.model import Contractor
from contractor_sync.payload import contractors_from_list, contractors_to_list, iso_timestamp

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = "1.0"


class CloudGateway(Protocol):
    """Contract the sync orchestrator needs from the remote directory."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> bool: ...

    async def pull(self) -> List[Contractor]: ...

    async def push(self, contractors: List[Contractor]) -> bool: ...


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retry: ``attempts`` tries, ``interval`` seconds apart, scaled by ``backoff``."""

    attempts: int = 10
    interval: float = 1.0
    backoff: float = 1.0
    max_interval: float = 60.0

    def delays(self) -> Iterator[float]:
        """Delays to wait between consecutive attempts (``attempts - 1`` values)."""
        delay = self.interval
        for _ in range(max(self.attempts - 1, 0)):
            yield min(delay, self.max_interval)
            delay *= self.backoff


class HttpCloudGateway:
    """REST implementation of :class:`CloudGateway`.

    ``GET {base_url}/directories/{key}`` returns the stored document (404 means
    nothing stored yet) and ``PUT`` replaces it.
    """

    def __init__(
        self,
        base_url: str,
        directory_key: str,
        *,
        device_id: str | None = None,
        api_key: str | None = None,
        timeout: float = 10.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.directory_key = directory_key
        self.device_id = device_id
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._connected = False
        self.last_sync: str | None = None

    @property
    def document_path(self) -> str:
        return f"/directories/{self.directory_key}"

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def __aenter__(self) -> "HttpCloudGateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _probe(self) -> bool:
        try:
            response = await self._client.get(self.document_path)
        except httpx.HTTPError as exc:
            logger.info("Cloud directory unreachable: %s", exc)
            return False
        return response.status_code in (200, 404)

    async def connect(self) -> bool:
        """Probe the endpoint under the retry policy; sets :attr:`is_connected`."""
        delays = self.retry_policy.delays()
        for attempt in range(1, self.retry_policy.attempts + 1):
            if await self._probe():
                self._connected = True
                logger.info("Connected to cloud directory %s", self.directory_key)
                return True
            delay = next(delays, None)
            if delay is None:
                break
            logger.debug("Cloud probe attempt %d failed, retrying in %.1fs", attempt, delay)
            await self._sleep(delay)
        self._connected = False
        logger.warning(
            "Cloud directory unavailable after %d attempts", self.retry_policy.attempts
        )
        return False

    async def pull(self) -> List[Contractor]:
        """Return the remote contractors (empty when nothing is stored)."""
        try:
            response = await self._client.get(self.document_path)
        except httpx.HTTPError as exc:
            self._connected = False
            raise SyncError(f"Cannot reach cloud directory: {exc}") from exc
        if response.status_code == 404:
            return []
        if response.status_code != 200:
            raise SyncError(f"Cloud directory returned HTTP {response.status_code}")
        try:
            document = response.json()
        except ValueError as exc:
            raise SyncError("Cloud directory returned invalid JSON") from exc
        contractors = _parse_document(document)
        logger.info("Pulled %d contractors from the cloud", len(contractors))
        return contractors

    async def push(self, contractors: List[Contractor]) -> bool:
        """Replace the remote document; ``False`` on any transport failure."""
        now = iso_timestamp()
        document = {
            "contractors": contractors_to_list(contractors),
            "lastSync": now,
            "count": len(contractors),
            "version": DOCUMENT_VERSION,
            "deviceId": self.device_id,
        }
        try:
            response = await self._client.put(self.document_path, json=document)
        except httpx.HTTPError as exc:
            self._connected = False
            logger.warning("Push to cloud failed: %s", exc)
            return False
        if not 200 <= response.status_code < 300:
            logger.warning("Push to cloud rejected: HTTP %d", response.status_code)
            return False
        self.last_sync = now
        logger.info("Pushed %d contractors to the cloud", len(contractors))
        return True


def _parse_document(document: Any) -> List[Contractor]:
    """Extract contractors from a cloud document; raises :class:`SyncError`."""
    if document is None:
        return []
    if not isinstance(document, dict):
        raise SyncError("Cloud document is not an object")
    items = document.get("contractors")
    if items is None:
        return []
    if isinstance(items, dict) and isinstance(items.get("array"), list):
        items = items["array"]  # Older layout nested the list under "array"
    if not isinstance(items, list):
        raise SyncError("Cloud document has no contractor list")
    try:
        return contractors_from_list(items)
    except ValueError as exc:
        raise SyncError(f"Malformed contractor in cloud document: {exc}") from exc


__all__ = ["CloudGateway", "HttpCloudGateway", "RetryPolicy", "DOCUMENT_VERSION"]
