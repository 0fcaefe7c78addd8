"""Unit tests for JSON output formatter."""

import json

import pytest

from resilient_fetch.models.data_models import (
    FetchResult,
    FetchStats,
    FetchStatus,
    HealthRecord,
    RequestMetrics,
)
from resilient_fetch.pipeline.output import JSONOutputFormatter


@pytest.fixture
def sample_results():
    return [
        FetchResult(status=FetchStatus.SUCCESS, data={"id": 1}, attempts=1, response_time_ms=12.3456),
        FetchResult(status=FetchStatus.CACHED, data={"id": 1}, from_cache=True, response_time_ms=0.1),
        FetchResult(status=FetchStatus.ERROR, error="HTTP 503", attempts=4, response_time_ms=7000.0),
    ]


@pytest.fixture
def sample_stats():
    return FetchStats(
        cache_size=1,
        open_breakers=0,
        in_flight=0,
        health_records=[
            HealthRecord(
                endpoint="http://api.test/health",
                healthy=True,
                last_checked_at=10.0,
                response_time_ms=3.14159,
                status_code=200
            )
        ]
    )


@pytest.fixture
def sample_metrics():
    return RequestMetrics(
        total_requests=3,
        successful_requests=1,
        failed_requests=1,
        cache_hits=1,
        total_response_time_ms=7012.4456
    )


class TestJSONOutputFormatter:

    def test_format_result(self, sample_results):
        formatted = JSONOutputFormatter().format_result(sample_results[0])

        assert formatted == {
            "status": "success",
            "data": {"id": 1},
            "error": None,
            "from_cache": False,
            "attempts": 1,
            "response_time_ms": 12.35
        }

    def test_format_sections(self, sample_results, sample_stats, sample_metrics):
        formatted = JSONOutputFormatter().format(sample_results, sample_stats, sample_metrics)

        assert [r["status"] for r in formatted["results"]] == ["success", "cached", "error"]
        assert formatted["stats"]["cache_size"] == 1
        assert formatted["stats"]["health_records"][0]["response_time_ms"] == 3.14
        assert formatted["metrics"]["total_requests"] == 3
        assert formatted["metrics"]["cache_hit_rate"] == 0.3333
        assert formatted["metrics"]["success_rate"] == 0.6667

    def test_dumps_is_valid_json(self, sample_results, sample_stats, sample_metrics):
        text = JSONOutputFormatter().dumps(sample_results, sample_stats, sample_metrics)

        assert json.loads(text)["results"][2]["error"] == "HTTP 503"

    def test_save_creates_parent_directories(self, tmp_path, sample_results, sample_stats, sample_metrics):
        path = tmp_path / "nested" / "out" / "fetch.json"

        JSONOutputFormatter().save(sample_results, sample_stats, sample_metrics, str(path))

        with open(path, encoding="utf-8") as f:
            saved = json.load(f)
        assert len(saved["results"]) == 3
