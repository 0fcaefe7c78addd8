"""Pytest configuration and shared fixtures."""

import pytest

from tests.fixtures.upstream import FakeClock, FakeUpstream, RecordingSleeper, make_client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return RecordingSleeper()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def client(upstream, clock, sleeper):
    """FetchClient against the fake upstream with small, test-friendly defaults."""
    return make_client(
        upstream,
        clock,
        sleeper,
        circuit_breaker_failure_threshold=3,
        default_max_retries=2,
        cache_ttl=1.0,
        cache_stale_grace=10.0,
    )

