"""Async request orchestration with caching, deduplication and resilience patterns."""

from .cache import CacheStore
from .circuit_breaker import CircuitBreaker
from .deduplicator import RequestDeduplicator
from .fetch_client import FetchClient
from .health_monitor import HealthMonitor
from .retry_handler import RetryHandler

__all__ = [
    "CacheStore",
    "CircuitBreaker",
    "FetchClient",
    "HealthMonitor",
    "RequestDeduplicator",
    "RetryHandler",
]
