"""
Async HTTP client for live clusters.

Fetches the worker roster from the cluster controller and delivers reboot
requests to worker control endpoints.
"""

import asyncio
import time
from logging import Logger
from typing import Any

import httpx

from attrition_engine.config import Settings
from attrition_engine.domain import RebootRequest, WorkerDescriptor
from attrition_engine.errors import ClusterClientError
from attrition_engine.interfaces import WorkerRoster
from attrition_engine.logging import get_logger

WORKERS_PATH = "/workers"
REBOOT_PATH = "/control/reboot"


class AsyncClusterClient(WorkerRoster):
    """
    Async client for the live cluster control plane.

    Handles:
    - Roster queries against the cluster controller
    - Fire-and-forget reboot delivery to workers
    """

    def __init__(self, settings: Settings, logger: Logger | None = None) -> None:
        """
        Initialize cluster client.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self._settings = settings
        self._logger = logger or get_logger(__name__)
        self._base_url = settings.cluster_url.rstrip("/")
        self._scheme = settings.worker_scheme
        self._timeout = settings.request_timeout

        self._client: httpx.AsyncClient | None = None
        # In-flight reboot deliveries, kept referenced until they finish
        self._deliveries: set[asyncio.Task[None]] = set()

        self._last_latency_ms: int = 0
        self._sent = 0
        self._undelivered = 0

    @property
    def metrics(self) -> dict[str, Any]:
        """Get client metrics."""
        return {
            "last_roster_latency_ms": self._last_latency_ms,
            "reboots_sent": self._sent,
            "reboots_undelivered": self._undelivered,
            "reboots_in_flight": len(self._deliveries),
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def drain(self) -> None:
        """Wait for in-flight reboot deliveries to finish."""
        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def close(self) -> None:
        """Drain deliveries and close HTTP client."""
        await self.drain()
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def list_workers(self) -> list[WorkerDescriptor]:
        """
        Fetch the worker roster.

        Raises:
            ClusterClientError: Request failed or returned a non-200 status
        """
        url = f"{self._base_url}{WORKERS_PATH}"
        client = await self._get_client()
        start_time = time.perf_counter()
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise ClusterClientError(f"Roster request failed: {e}") from e
        self._last_latency_ms = int((time.perf_counter() - start_time) * 1000)

        if response.status_code != 200:
            raise ClusterClientError(
                f"Roster request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        data = response.json()
        workers = [WorkerDescriptor.model_validate(w) for w in data.get("workers", [])]
        self._logger.info("Fetched roster: %d workers in %dms", len(workers), self._last_latency_ms)
        return workers

    def send_reboot(self, worker: WorkerDescriptor, request: RebootRequest) -> None:
        """
        Ask a worker to reboot.

        Best-effort: the request is posted from a background task, no
        acknowledgement is awaited, failures are logged and never retried.
        Must be called from a running event loop.
        """
        task = asyncio.create_task(self._deliver(worker, request))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)
        self._sent += 1

    async def _deliver(self, worker: WorkerDescriptor, request: RebootRequest) -> None:
        url = f"{self._scheme}://{worker.address}{REBOOT_PATH}"
        try:
            client = await self._get_client()
            await client.post(url, json=request.model_dump(by_alias=True))
        except httpx.HTTPError as e:
            self._undelivered += 1
            self._logger.debug("Reboot request to %s not delivered: %s", worker.address, e)
