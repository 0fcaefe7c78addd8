"""Failure taxonomy for the fetch layer."""

from typing import Optional


class FetchError(Exception):
    """Base class for failures of a single attempt or a whole request."""

    retryable: bool = True

    def __init__(self, message: str, retryable: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable
        # Filled in by the retry executor once the sequence is over
        self.attempts = 0


class RequestTimeoutError(FetchError):
    """Attempt exceeded its deadline."""


class NetworkError(FetchError):
    """Connection-level failure."""


class HttpStatusError(FetchError):
    """Non-2xx response; retried for 5xx, 408 and 429 only."""

    RETRYABLE_STATUS_CODES = frozenset({408, 429})

    def __init__(self, status_code: int, reason: str = ""):
        message = f"HTTP {status_code}: {reason}" if reason else f"HTTP {status_code}"
        retryable = status_code >= 500 or status_code in self.RETRYABLE_STATUS_CODES
        super().__init__(message, retryable=retryable)
        self.status_code = status_code


class ParseError(FetchError):
    """
    Response body could not be decoded.

    Not retried: the upstream answered, and repeating the call returns the
    same undecodable body. The failed sequence still counts against the
    destination's circuit breaker.
    """

    retryable = False


class InvalidRequestError(FetchError):
    """The request itself is malformed; retrying cannot help."""

    retryable = False


class CircuitOpenError(FetchError):
    """Breaker prevented any attempt."""

    retryable = False

    def __init__(self, destination: str):
        super().__init__(
            f"Circuit breaker open for {destination} - service temporarily unavailable"
        )
        self.destination = destination


class FallbackExhaustedError(FetchError):
    """No static fallback and no usable stale cache."""

    retryable = False


class HealthMonitorError(RuntimeError):
    """Health monitor lifecycle misuse."""
