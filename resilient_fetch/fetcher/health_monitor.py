"""Periodic, advisory endpoint health probing."""

import asyncio
from typing import Dict, Iterable, List, Optional

import httpx

from resilient_fetch.fetcher.clock import Clock, MonotonicClock
from resilient_fetch.fetcher.errors import HealthMonitorError
from resilient_fetch.fetcher.http_client import AsyncHTTPClient
from resilient_fetch.models.data_models import HealthRecord
from resilient_fetch.monitoring.logger import StructuredLogger


class HealthMonitor:
    """
    Records reachability and latency per endpoint.

    Purely advisory: the request path never consults it. A single
    background task runs the probes; starting it twice is an error.
    """

    def __init__(
        self,
        http_client: AsyncHTTPClient,
        probe_timeout: float = 5.0,
        freshness_window: float = 300.0,
        clock: Optional[Clock] = None,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize health monitor.

        Args:
            http_client: Client used for HEAD probes
            probe_timeout: Deadline for a single probe in seconds
            freshness_window: How long a healthy record stays trustworthy
            clock: Clock interface for time management (defaults to MonotonicClock)
            logger: Optional structured logger
        """
        self.http_client = http_client
        self.probe_timeout = probe_timeout
        self.freshness_window = freshness_window
        self.clock = clock or MonotonicClock()
        self.logger = logger
        self._records: Dict[str, HealthRecord] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def probe(self, endpoint: str) -> HealthRecord:
        """
        Probe endpoint with a HEAD request and store the outcome.

        Network failures and timeouts produce an unhealthy record rather
        than an exception.
        """
        start = self.clock.now()
        try:
            response = await asyncio.wait_for(
                self.http_client.head(endpoint),
                timeout=self.probe_timeout
            )
        except asyncio.TimeoutError:
            record = self._unhealthy(endpoint, f"Health check timeout after {self.probe_timeout}s")
        except httpx.HTTPError as e:
            record = self._unhealthy(endpoint, str(e) or type(e).__name__)
        else:
            now = self.clock.now()
            record = HealthRecord(
                endpoint=endpoint,
                healthy=response.is_success,
                last_checked_at=now,
                response_time_ms=(now - start) * 1000,
                status_code=response.status_code,
                error=None if response.is_success else f"HTTP {response.status_code}"
            )

        self._records[endpoint] = record
        if self.logger:
            self.logger.health_probe(
                endpoint=endpoint,
                healthy=record.healthy,
                elapsed_ms=record.response_time_ms,
                error=record.error
            )
        return record

    def _unhealthy(self, endpoint: str, error: str) -> HealthRecord:
        return HealthRecord(
            endpoint=endpoint,
            healthy=False,
            last_checked_at=self.clock.now(),
            error=error
        )

    def is_healthy(self, endpoint: str) -> bool:
        """Optimistic when unknown; otherwise healthy and recent enough."""
        record = self._records.get(endpoint)
        if record is None:
            return True
        age = self.clock.now() - record.last_checked_at
        return record.healthy and age <= self.freshness_window

    def records(self) -> List[HealthRecord]:
        return list(self._records.values())

    def start(self, endpoints: Iterable[str], interval: float) -> None:
        """
        Start probing endpoints every interval seconds.

        Raises:
            HealthMonitorError: If monitoring is already running
            ValueError: If interval is not positive or no endpoints are given
        """
        if self.running:
            raise HealthMonitorError("Health monitoring is already running")
        if interval <= 0:
            raise ValueError(f"interval must be positive, got: {interval}")
        targets = list(endpoints)
        if not targets:
            raise ValueError("At least one endpoint is required for health monitoring")

        self._task = asyncio.ensure_future(self._run(targets, interval))
        if self.logger:
            self.logger.health_monitor("start", endpoints=targets, interval=interval)

    async def _run(self, endpoints: List[str], interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await asyncio.gather(*(self.probe(endpoint) for endpoint in endpoints))

    async def stop(self) -> None:
        """Stop the background probe task; a no-op when not running."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        if self.logger:
            self.logger.health_monitor("stop")

    def clear(self) -> None:
        self._records.clear()
