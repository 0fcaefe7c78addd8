"""Core data models for the resilient fetch layer."""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD"})


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class FetchStatus(Enum):
    """How a FetchResult was produced."""
    SUCCESS = "success"
    CACHED = "cached"
    FALLBACK = "fallback"
    ERROR = "error"


def canonical_json(body: Any) -> str:
    """Serialize a body with sorted keys so equal payloads produce equal text."""
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class RequestSpec:
    """
    Immutable description of one logical call.

    ``None`` for timeout, max_retries or cache_ttl means "use the client
    default". ``fallback_data=None`` means no static fallback is configured.
    """
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    timeout: Optional[float] = None
    max_retries: Optional[int] = None
    fallback_data: Any = None
    cache_enabled: bool = True
    cache_ttl: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.url or not self.url.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got: {self.url!r}")

        method = self.method.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method!r}")
        object.__setattr__(self, "method", method)

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got: {self.timeout}")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got: {self.max_retries}")
        if self.cache_ttl is not None and self.cache_ttl < 0:
            raise ValueError(f"cache_ttl must be >= 0, got: {self.cache_ttl}")

        try:
            digest = hashlib.sha256(canonical_json(self.body).encode("utf-8")).hexdigest()
        except (TypeError, ValueError) as e:
            raise ValueError(f"Request body is not JSON-serializable: {e}") from e
        object.__setattr__(self, "_body_digest", digest)

    def __hash__(self) -> int:
        # headers, body and fallback_data may be unhashable; equal specs share a signature
        return hash(self.signature)

    @property
    def signature(self) -> str:
        """Deterministic key identifying "the same request"."""
        return f"{self.method} {self.url} {self._body_digest}"

    @property
    def has_fallback(self) -> bool:
        return self.fallback_data is not None


@dataclass
class CacheEntry:
    """Last-known-good response for a signature."""
    value: Any
    stored_at: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_fresh(self, now: float, max_age: Optional[float] = None) -> bool:
        limit = self.ttl if max_age is None else max_age
        return self.age(now) <= limit


@dataclass
class BreakerState:
    """Internal state for a single destination's circuit."""
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_at: float = 0.0
    probe_started_at: Optional[float] = None


@dataclass
class HealthRecord:
    """Result of the latest health probe for an endpoint."""
    endpoint: str
    healthy: bool
    last_checked_at: float
    response_time_ms: Optional[float] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass
class FetchResult(Generic[T]):
    """The only thing ever returned to a caller of FetchClient.fetch."""
    status: FetchStatus
    data: Optional[T] = None
    error: Optional[str] = None
    from_cache: bool = False
    attempts: int = 0
    response_time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is not FetchStatus.ERROR


@dataclass
class FetchStats:
    """Snapshot of the client's in-memory tables."""
    cache_size: int
    open_breakers: int
    in_flight: int
    health_records: List[HealthRecord]


@dataclass
class RequestMetrics:
    """Cumulative request counters for a client."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    fallback_responses: int = 0
    cache_hits: int = 0
    total_response_time_ms: float = 0.0

    @property
    def average_response_time_ms(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_response_time_ms / self.total_requests

    @property
    def cache_hit_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.cache_hits / self.total_requests

    @property
    def success_rate(self) -> float:
        """Share of requests answered with live or cached data."""
        if self.total_requests == 0:
            return 0.0
        return (self.successful_requests + self.cache_hits) / self.total_requests
