"""Structured logging for fetch layer monitoring."""

import json
import logging
from typing import Optional


class StructuredLogger:
    """Structured logger with uniform schema."""

    def __init__(self, name: str = "resilient_fetch", level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def log(self, event: str, level: int = logging.INFO, **kwargs) -> None:
        """
        Log structured event.

        Standard keys: event, method, url, status, attempt, attempts,
                      elapsed_ms, cb_state, delay, error
        """
        log_data = {"event": event, **kwargs}
        self.logger.log(level, json.dumps(log_data, default=str))

    def fetch_start(self, method: str, url: str) -> None:
        self.log("fetch_start", level=logging.DEBUG, method=method, url=url)

    def fetch_success(self, method: str, url: str, attempts: int, elapsed_ms: float) -> None:
        self.log("fetch_success", method=method, url=url, attempts=attempts, elapsed_ms=elapsed_ms)

    def cache_hit(self, method: str, url: str) -> None:
        self.log("cache_hit", level=logging.DEBUG, method=method, url=url)

    def attempt_failed(self, url: str, attempt: int, error: str, retryable: bool, delay: Optional[float]) -> None:
        self.log(
            "attempt_failed",
            level=logging.WARNING,
            url=url,
            attempt=attempt,
            error=error,
            retryable=retryable,
            delay=delay,
        )

    def fallback_used(self, url: str, source: str, reason: str) -> None:
        self.log("fallback_used", level=logging.WARNING, url=url, source=source, error=reason)

    def fetch_error(self, method: str, url: str, error: str, attempts: int) -> None:
        self.log("fetch_error", level=logging.ERROR, method=method, url=url, error=error, attempts=attempts)

    def circuit_breaker_state(self, source: str, state: str, failures: int) -> None:
        self.log("circuit_breaker", level=logging.WARNING, source=source, cb_state=state, failures=failures)

    def health_probe(self, endpoint: str, healthy: bool, elapsed_ms: Optional[float], error: Optional[str]) -> None:
        self.log("health_probe", endpoint=endpoint, healthy=healthy, elapsed_ms=elapsed_ms, error=error)

    def health_monitor(self, action: str, **kwargs) -> None:
        self.log("health_monitor", action=action, **kwargs)
