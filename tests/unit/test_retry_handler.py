"""Unit tests for retry handler with exponential backoff."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from resilient_fetch.fetcher.errors import (
    FetchError,
    HttpStatusError,
    NetworkError,
    ParseError,
    RequestTimeoutError,
)
from resilient_fetch.fetcher.retry_handler import RetryHandler, calculate_backoff_delay
from tests.fixtures.upstream import RecordingSleeper


class TestBackoffCalculation:
    """Test exponential backoff formula: base_delay * (2 ** attempt)."""

    def test_deterministic_backoff_formula_verification(self):
        test_cases = [
            (0, 1.0),
            (1, 2.0),
            (2, 4.0),
            (3, 8.0),
        ]

        for attempt, expected_delay in test_cases:
            actual_delay = calculate_backoff_delay(attempt, base_delay=1.0)
            assert actual_delay == expected_delay, \
                f"Attempt {attempt}: expected {expected_delay}, got {actual_delay}"

    def test_custom_base_delay(self):
        assert calculate_backoff_delay(2, base_delay=0.25) == 1.0

    def test_caps_at_max_delay(self):
        assert calculate_backoff_delay(5, base_delay=1.0, max_delay=4.0) == 4.0

    def test_jitter_bounds(self):
        delays = [calculate_backoff_delay(1, base_delay=1.0, jitter_max=0.5) for _ in range(50)]

        assert all(2.0 <= d <= 2.5 for d in delays)


class TestRetryClassification:

    @pytest.fixture
    def retry_handler(self):
        return RetryHandler()

    @pytest.mark.parametrize("status_code", [500, 502, 503, 504, 408, 429])
    def test_retryable_status(self, retry_handler, status_code):
        assert retry_handler.is_retryable(HttpStatusError(status_code)) is True

    @pytest.mark.parametrize("status_code", [400, 401, 404, 422])
    def test_not_retryable_status(self, retry_handler, status_code):
        assert retry_handler.is_retryable(HttpStatusError(status_code)) is False

    def test_timeout_and_network_are_retryable(self, retry_handler):
        assert retry_handler.is_retryable(RequestTimeoutError("slow")) is True
        assert retry_handler.is_retryable(NetworkError("refused")) is True

    def test_parse_error_is_not_retryable(self, retry_handler):
        assert retry_handler.is_retryable(ParseError("bad json")) is False

    def test_foreign_exception_is_not_retryable(self, retry_handler):
        assert retry_handler.is_retryable(KeyError("x")) is False


class TestRetryHandler:

    @pytest.fixture
    def sleeper(self):
        return RecordingSleeper()

    @pytest.fixture
    def retry_handler(self, sleeper):
        return RetryHandler(base_delay=1.0, sleeper=sleeper)

    @pytest.mark.asyncio
    async def test_execute_success_first_try(self, retry_handler, sleeper):
        operation = AsyncMock(return_value="success")

        result, attempts = await retry_handler.execute(operation, max_retries=3)

        assert result == "success"
        assert attempts == 1
        assert operation.call_count == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_execute_retries_on_retryable_error(self, retry_handler, sleeper):
        operation = AsyncMock(side_effect=[
            HttpStatusError(503),
            NetworkError("reset"),
            "success"
        ])

        result, attempts = await retry_handler.execute(operation, max_retries=3)

        assert result == "success"
        assert attempts == 3
        assert sleeper.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_execute_fails_after_max_retries(self, retry_handler, sleeper):
        operation = AsyncMock(side_effect=HttpStatusError(503))

        with pytest.raises(HttpStatusError) as exc_info:
            await retry_handler.execute(operation, max_retries=3)

        # initial + 3 retries = 4 total, no sleep after the last one
        assert operation.call_count == 4
        assert exc_info.value.attempts == 4
        assert sleeper.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self, retry_handler, sleeper):
        operation = AsyncMock(side_effect=NetworkError("down"))

        with pytest.raises(NetworkError):
            await retry_handler.execute(operation, max_retries=0)

        assert operation.call_count == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_execute_no_retry_on_non_retryable(self, retry_handler, sleeper):
        operation = AsyncMock(side_effect=HttpStatusError(404))

        with pytest.raises(HttpStatusError) as exc_info:
            await retry_handler.execute(operation, max_retries=3)

        assert operation.call_count == 1
        assert exc_info.value.attempts == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_foreign_exception_is_wrapped(self, retry_handler, sleeper):
        operation = AsyncMock(side_effect=[NetworkError("refused"), KeyError("boom")])

        with pytest.raises(FetchError) as exc_info:
            await retry_handler.execute(operation, max_retries=3)

        assert "Unexpected error: KeyError" in str(exc_info.value)
        assert exc_info.value.retryable is False
        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.__cause__, KeyError)
        assert sleeper.delays == [1.0]

    @pytest.mark.asyncio
    async def test_attempt_timeout_becomes_retryable_failure(self, retry_handler, sleeper):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(1.0)
            return "late success"

        result, attempts = await retry_handler.execute(operation, max_retries=1, timeout=0.05)

        assert result == "late success"
        assert attempts == 2
        assert sleeper.delays == [1.0]

    @pytest.mark.asyncio
    async def test_all_attempts_time_out(self, retry_handler):
        async def operation():
            await asyncio.sleep(1.0)

        with pytest.raises(RequestTimeoutError, match="timeout"):
            await retry_handler.execute(operation, max_retries=1, timeout=0.02)
