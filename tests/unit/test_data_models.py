"""Unit tests for request specs and result models."""

import dataclasses

import pytest

from resilient_fetch.models.data_models import (
    CacheEntry,
    FetchResult,
    FetchStatus,
    RequestMetrics,
    RequestSpec,
)


class TestRequestSpecValidation:

    def test_defaults(self):
        spec = RequestSpec(url="http://api.test/x")

        assert spec.method == "GET"
        assert spec.headers == {}
        assert spec.body is None
        assert spec.timeout is None
        assert spec.max_retries is None
        assert spec.cache_enabled is True
        assert spec.has_fallback is False

    def test_method_is_normalized(self):
        assert RequestSpec(url="http://api.test/x", method="patch").method == "PATCH"

    @pytest.mark.parametrize("url", ["", "api.test/x", "ftp://api.test/x"])
    def test_rejects_bad_url(self, url):
        with pytest.raises(ValueError, match="must start with http"):
            RequestSpec(url=url)

    def test_rejects_unknown_method(self):
        with pytest.raises(ValueError, match="Unsupported HTTP method"):
            RequestSpec(url="http://api.test/x", method="BREW")

    @pytest.mark.parametrize("kwargs, message", [
        ({"timeout": 0}, "timeout must be positive"),
        ({"max_retries": -1}, "max_retries must be >= 0"),
        ({"cache_ttl": -5}, "cache_ttl must be >= 0"),
    ])
    def test_rejects_bad_numbers(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            RequestSpec(url="http://api.test/x", **kwargs)

    def test_rejects_unserializable_body(self):
        with pytest.raises(ValueError, match="not JSON-serializable"):
            RequestSpec(url="http://api.test/x", method="POST", body={"when": object()})

    def test_is_immutable(self):
        spec = RequestSpec(url="http://api.test/x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            spec.url = "http://api.test/y"

    def test_is_hashable_with_dict_fields(self):
        a = RequestSpec(url="http://api.test/x", headers={"X-A": "1"}, body={"a": 1}, fallback_data={"v": 1})
        b = RequestSpec(url="http://api.test/x", headers={"X-A": "1"}, body={"a": 1}, fallback_data={"v": 1})

        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_falsy_fallback_still_counts(self):
        assert RequestSpec(url="http://api.test/x", fallback_data=0).has_fallback is True


class TestSignature:

    def test_equal_inputs_collide(self):
        a = RequestSpec(url="http://api.test/x", method="POST", body={"a": 1, "b": [1, 2]})
        b = RequestSpec(url="http://api.test/x", method="post", body={"b": [1, 2], "a": 1})

        assert a.signature == b.signature

    def test_headers_and_policy_do_not_affect_signature(self):
        a = RequestSpec(url="http://api.test/x", headers={"X-A": "1"}, timeout=1.0)
        b = RequestSpec(url="http://api.test/x", cache_enabled=False, max_retries=0)

        assert a.signature == b.signature

    @pytest.mark.parametrize("other", [
        RequestSpec(url="http://api.test/y"),
        RequestSpec(url="http://api.test/x", method="DELETE"),
        RequestSpec(url="http://api.test/x", body={"a": 1}),
    ])
    def test_method_url_or_body_change_signature(self, other):
        assert RequestSpec(url="http://api.test/x").signature != other.signature

    def test_signature_starts_with_method_and_url(self):
        assert RequestSpec(url="http://api.test/x").signature.startswith("GET http://api.test/x ")


class TestResults:

    def test_cache_entry_freshness(self):
        entry = CacheEntry(value=1, stored_at=10.0, ttl=5.0)

        assert entry.is_fresh(15.0) is True
        assert entry.is_fresh(15.5) is False
        assert entry.is_fresh(15.5, max_age=6.0) is True

    @pytest.mark.parametrize("status, ok", [
        (FetchStatus.SUCCESS, True),
        (FetchStatus.CACHED, True),
        (FetchStatus.FALLBACK, True),
        (FetchStatus.ERROR, False),
    ])
    def test_ok(self, status, ok):
        assert FetchResult(status=status).ok is ok

    def test_empty_metrics(self):
        metrics = RequestMetrics()

        assert metrics.average_response_time_ms == 0.0
        assert metrics.cache_hit_rate == 0.0
        assert metrics.success_rate == 0.0

    def test_average_response_time(self):
        metrics = RequestMetrics(total_requests=4, total_response_time_ms=100.0)
        assert metrics.average_response_time_ms == 25.0
