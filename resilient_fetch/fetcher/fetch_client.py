"""Fetch orchestrator: caching, dedup, retries and the fallback cascade."""

import asyncio
from typing import Any, List, Optional

import httpx

from resilient_fetch.fetcher.cache import CacheStore
from resilient_fetch.fetcher.circuit_breaker import CircuitBreaker
from resilient_fetch.fetcher.clock import Clock, MonotonicClock
from resilient_fetch.fetcher.deduplicator import RequestDeduplicator
from resilient_fetch.fetcher.errors import (
    CircuitOpenError,
    FallbackExhaustedError,
    FetchError,
    HttpStatusError,
    InvalidRequestError,
    NetworkError,
    ParseError,
    RequestTimeoutError,
)
from resilient_fetch.fetcher.health_monitor import HealthMonitor
from resilient_fetch.fetcher.http_client import AsyncHTTPClient
from resilient_fetch.fetcher.retry_handler import RetryHandler
from resilient_fetch.models.config import FetchClientConfig
from resilient_fetch.models.data_models import (
    FetchResult,
    FetchStats,
    FetchStatus,
    RequestMetrics,
    RequestSpec,
)
from resilient_fetch.monitoring.logger import StructuredLogger


async def perform_request(http_client: AsyncHTTPClient, spec: RequestSpec) -> Any:
    """
    Perform a single attempt and decode the JSON response.

    Raises:
        RequestTimeoutError: On transport timeout
        InvalidRequestError: On malformed URL or unsupported scheme
        NetworkError: On other connection-level failures, redirect loops included
        HttpStatusError: On non-2xx responses
        ParseError: On a corrupt content encoding or undecodable JSON
    """
    try:
        response = await http_client.request(
            spec.method,
            spec.url,
            headers=spec.headers or None,
            json_body=spec.body
        )
    except httpx.TimeoutException as e:
        raise RequestTimeoutError(f"Request timeout: {e}") from e
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
        raise InvalidRequestError(f"Invalid request: {e}") from e
    except httpx.DecodingError as e:
        raise ParseError(f"Undecodable response body: {e}") from e
    except httpx.RequestError as e:
        raise NetworkError(str(e) or type(e).__name__) from e

    if not response.is_success:
        raise HttpStatusError(response.status_code, response.reason_phrase)

    if not response.content:
        return None

    try:
        return response.json()
    except ValueError as e:
        raise ParseError(f"Invalid JSON in response: {e}") from e


class FetchClient:
    """
    Resilient request orchestrator.

    Responsibilities:
    - Share one network round-trip between concurrent identical requests
    - Serve fresh cached responses without touching the network
    - Fail fast for destinations whose circuit is open
    - Retry transient failures with exponential backoff
    - Degrade to static fallback data or stale cache before reporting an error

    ``fetch`` never raises for runtime failures; every outcome is a FetchResult.
    """

    def __init__(
        self,
        config: Optional[FetchClientConfig] = None,
        http_client: Optional[AsyncHTTPClient] = None,
        clock: Optional[Clock] = None,
        sleeper=None,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize the client and its in-memory tables.

        Args:
            config: Client configuration (defaults to FetchClientConfig())
            http_client: HTTP client (defaults to one built from config)
            clock: Clock shared by cache, breaker and health monitor
            sleeper: Async sleep used between retries (default: asyncio.sleep)
            logger: Structured logger (default: one at config.log_level)
        """
        self.config = config or FetchClientConfig()
        self.clock = clock or MonotonicClock()
        self.logger = logger or StructuredLogger(level=self.config.log_level)
        self.http_client = http_client or AsyncHTTPClient(default_headers=self.config.default_headers)

        self.cache = CacheStore(
            stale_grace=self.config.cache_stale_grace,
            max_entries=self.config.cache_max_entries,
            clock=self.clock
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=self.config.circuit_breaker_failure_threshold,
            cooldown_seconds=self.config.circuit_breaker_cooldown,
            clock=self.clock,
            logger=self.logger
        )
        self.deduplicator = RequestDeduplicator()
        self.retry_handler = RetryHandler(
            base_delay=self.config.retry_base_delay,
            max_delay=self.config.retry_max_delay,
            jitter_max=self.config.retry_jitter_max,
            sleeper=sleeper or asyncio.sleep,
            logger=self.logger
        )
        self.health_monitor = HealthMonitor(
            self.http_client,
            probe_timeout=self.config.health_check_timeout,
            freshness_window=self.config.health_freshness_window,
            clock=self.clock,
            logger=self.logger
        )
        self.metrics = RequestMetrics()

    async def __aenter__(self):
        self.http_client.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        """Stop monitoring, drop all in-memory state and close the HTTP client."""
        await self.stop_health_monitoring()
        self.clear_cache()
        self.reset_breakers()
        self.health_monitor.clear()
        await self.http_client.aclose()

    def _elapsed_ms(self, started: float) -> float:
        return (self.clock.now() - started) * 1000

    async def fetch(self, spec: RequestSpec) -> FetchResult:
        """
        Run one request through the cascade.

        Order: join in-flight → fresh cache → breaker → network with
        retries → static fallback → stale cache → error.
        """
        started = self.clock.now()
        signature = spec.signature

        pending = self.deduplicator.pending(signature)
        if pending is not None:
            return await asyncio.shield(pending)

        if spec.cache_enabled:
            entry = self.cache.get(signature)
            if entry is not None:
                self.logger.cache_hit(spec.method, spec.url)
                return self._record(FetchResult(
                    status=FetchStatus.CACHED,
                    data=entry.value,
                    from_cache=True,
                    attempts=0,
                    response_time_ms=self._elapsed_ms(started)
                ))

        if self.circuit_breaker.is_open(spec.url):
            return self._record(self._fallback(spec, CircuitOpenError(spec.url), 0, started))

        if not self.http_client.is_open:
            self.http_client.open()

        return await self.deduplicator.dedupe(signature, lambda: self._execute(spec, started))

    async def _execute(self, spec: RequestSpec, started: float) -> FetchResult:
        self.logger.fetch_start(spec.method, spec.url)
        max_retries = (
            spec.max_retries if spec.max_retries is not None else self.config.default_max_retries
        )
        timeout = spec.timeout if spec.timeout is not None else self.config.default_timeout

        try:
            data, attempts = await self.retry_handler.execute(
                lambda: perform_request(self.http_client, spec),
                max_retries=max_retries,
                timeout=timeout,
                label=spec.url
            )
        except FetchError as e:
            self.circuit_breaker.record_failure(spec.url)
            return self._record(self._fallback(spec, e, e.attempts, started))
        except Exception as e:
            # Anything left unmapped still ends the sequence as a failure
            error = FetchError(f"Unexpected error: {type(e).__name__}: {e}", retryable=False)
            self.circuit_breaker.record_failure(spec.url)
            return self._record(self._fallback(spec, error, error.attempts, started))

        self.circuit_breaker.record_success(spec.url)
        if spec.cache_enabled:
            ttl = spec.cache_ttl if spec.cache_ttl is not None else self.config.cache_ttl
            self.cache.set(spec.signature, data, ttl)

        elapsed_ms = self._elapsed_ms(started)
        self.logger.fetch_success(spec.method, spec.url, attempts=attempts, elapsed_ms=elapsed_ms)
        return self._record(FetchResult(
            status=FetchStatus.SUCCESS,
            data=data,
            from_cache=False,
            attempts=attempts,
            response_time_ms=elapsed_ms
        ))

    def _fallback(self, spec: RequestSpec, error: FetchError, attempts: int, started: float) -> FetchResult:
        """Static fallback, then stale cache, then a structured error."""
        if spec.has_fallback:
            self.logger.fallback_used(spec.url, source="static", reason=str(error))
            return FetchResult(
                status=FetchStatus.FALLBACK,
                data=spec.fallback_data,
                from_cache=False,
                attempts=attempts,
                response_time_ms=self._elapsed_ms(started)
            )

        if spec.cache_enabled:
            stale = self.cache.get_stale(spec.signature)
            if stale is not None:
                self.logger.fallback_used(spec.url, source="stale_cache", reason=str(error))
                return FetchResult(
                    status=FetchStatus.FALLBACK,
                    data=stale.value,
                    from_cache=True,
                    attempts=attempts,
                    response_time_ms=self._elapsed_ms(started)
                )

        exhausted = FallbackExhaustedError(f"No fallback available: {error}")
        self.logger.fetch_error(spec.method, spec.url, error=str(exhausted), attempts=attempts)
        return FetchResult(
            status=FetchStatus.ERROR,
            error=str(error),
            from_cache=False,
            attempts=attempts,
            response_time_ms=self._elapsed_ms(started)
        )

    def _record(self, result: FetchResult) -> FetchResult:
        self.metrics.total_requests += 1
        self.metrics.total_response_time_ms += result.response_time_ms
        if result.status is FetchStatus.SUCCESS:
            self.metrics.successful_requests += 1
        elif result.status is FetchStatus.CACHED:
            self.metrics.cache_hits += 1
        elif result.status is FetchStatus.FALLBACK:
            self.metrics.fallback_responses += 1
        else:
            self.metrics.failed_requests += 1
        return result

    async def get(self, url: str, **kwargs) -> FetchResult:
        return await self.fetch(RequestSpec(url=url, method="GET", **kwargs))

    async def post(self, url: str, body: Any = None, **kwargs) -> FetchResult:
        return await self.fetch(RequestSpec(url=url, method="POST", body=body, **kwargs))

    async def put(self, url: str, body: Any = None, **kwargs) -> FetchResult:
        return await self.fetch(RequestSpec(url=url, method="PUT", body=body, **kwargs))

    async def patch(self, url: str, body: Any = None, **kwargs) -> FetchResult:
        return await self.fetch(RequestSpec(url=url, method="PATCH", body=body, **kwargs))

    async def delete(self, url: str, **kwargs) -> FetchResult:
        return await self.fetch(RequestSpec(url=url, method="DELETE", **kwargs))

    # Administrative surface

    def get_stats(self) -> FetchStats:
        return FetchStats(
            cache_size=len(self.cache),
            open_breakers=self.circuit_breaker.open_count(),
            in_flight=len(self.deduplicator),
            health_records=self.health_monitor.records()
        )

    def get_metrics(self) -> RequestMetrics:
        return self.metrics

    def clear_cache(self) -> None:
        """Drop cached responses and in-flight bookkeeping."""
        self.cache.clear()
        self.deduplicator.clear()

    def reset_breakers(self) -> None:
        self.circuit_breaker.reset()

    def start_health_monitoring(self, interval: float, endpoints: Optional[List[str]] = None) -> None:
        """
        Probe endpoints (default: config.health_check_endpoints) every interval seconds.

        Raises:
            HealthMonitorError: If monitoring is already running
        """
        if not self.http_client.is_open:
            self.http_client.open()
        targets = endpoints if endpoints is not None else self.config.health_check_endpoints
        self.health_monitor.start(targets, interval)

    async def stop_health_monitoring(self) -> None:
        await self.health_monitor.stop()

    def is_endpoint_healthy(self, endpoint: str) -> bool:
        return self.health_monitor.is_healthy(endpoint)
