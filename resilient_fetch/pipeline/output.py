"""JSON output formatter for fetch results and client statistics.

Renders FetchResult, FetchStats and RequestMetrics as plain dictionaries
so the CLI can print them or save them for operational tooling.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from resilient_fetch.models.data_models import FetchResult, FetchStats, RequestMetrics


class JSONOutputFormatter:
    """
    Formats fetch runs as JSON.

    Example output structure:
    {
        "results": [
            {
                "status": "fallback",
                "data": {"id": 1},
                "error": null,
                "from_cache": false,
                "attempts": 3,
                "response_time_ms": 7012.4
            }
        ],
        "stats": {"cache_size": 0, "open_breakers": 1, "in_flight": 0, "health_records": []},
        "metrics": {"total_requests": 1, ...}
    }
    """

    def format(
        self,
        results: List[FetchResult],
        stats: FetchStats,
        metrics: RequestMetrics
    ) -> Dict[str, Any]:
        """Format a run as a JSON-serializable dictionary."""
        return {
            "results": [self.format_result(result) for result in results],
            "stats": self.format_stats(stats),
            "metrics": self.format_metrics(metrics)
        }

    def format_result(self, result: FetchResult) -> Dict[str, Any]:
        return {
            "status": result.status.value,
            "data": result.data,
            "error": result.error,
            "from_cache": result.from_cache,
            "attempts": result.attempts,
            "response_time_ms": round(result.response_time_ms, 2)
        }

    def format_stats(self, stats: FetchStats) -> Dict[str, Any]:
        return {
            "cache_size": stats.cache_size,
            "open_breakers": stats.open_breakers,
            "in_flight": stats.in_flight,
            "health_records": [
                {
                    "endpoint": record.endpoint,
                    "healthy": record.healthy,
                    "last_checked_at": record.last_checked_at,
                    "response_time_ms": (
                        round(record.response_time_ms, 2)
                        if record.response_time_ms is not None else None
                    ),
                    "status_code": record.status_code,
                    "error": record.error
                }
                for record in stats.health_records
            ]
        }

    def format_metrics(self, metrics: RequestMetrics) -> Dict[str, Any]:
        return {
            "total_requests": metrics.total_requests,
            "successful_requests": metrics.successful_requests,
            "failed_requests": metrics.failed_requests,
            "fallback_responses": metrics.fallback_responses,
            "cache_hits": metrics.cache_hits,
            "average_response_time_ms": round(metrics.average_response_time_ms, 2),
            "cache_hit_rate": round(metrics.cache_hit_rate, 4),
            "success_rate": round(metrics.success_rate, 4)
        }

    def dumps(self, results: List[FetchResult], stats: FetchStats, metrics: RequestMetrics) -> str:
        return json.dumps(self.format(results, stats, metrics), indent=2, ensure_ascii=False, default=str)

    def save(
        self,
        results: List[FetchResult],
        stats: FetchStats,
        metrics: RequestMetrics,
        path: str = "out/fetch.json"
    ) -> None:
        """
        Save formatted run to a JSON file.

        Creates parent directories if they don't exist.
        """
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.dumps(results, stats, metrics))
