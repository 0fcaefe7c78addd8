"""CLI entry point for the resilient fetch client.

Operational tooling over the client's administrative surface: run requests
through the full cascade, probe endpoint health, or serve the mock upstream.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from resilient_fetch.fetcher.fetch_client import FetchClient
from resilient_fetch.models.config import ConfigManager, FetchClientConfig
from resilient_fetch.models.data_models import (
    FetchResult,
    FetchStats,
    FetchStatus,
    HealthRecord,
    RequestMetrics,
    RequestSpec,
)
from resilient_fetch.pipeline.output import JSONOutputFormatter


console = Console()

STATUS_STYLES = {
    FetchStatus.SUCCESS: "green",
    FetchStatus.CACHED: "cyan",
    FetchStatus.FALLBACK: "yellow",
    FetchStatus.ERROR: "red",
}


def _parse_json_option(value: Optional[str], option: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError as e:
        raise click.BadParameter(f"{option} must be valid JSON: {e}")


def _parse_headers(values: Tuple[str, ...]) -> dict:
    headers = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"Header must look like 'Name: value', got: {raw!r}")
        headers[name.strip()] = value.strip()
    return headers


@click.group()
@click.version_option(version="1.0.0", prog_name="resilient-fetch")
def main() -> None:
    """
    Resilient Fetch - HTTP requests with caching, deduplication, retries,
    circuit breaking and fallbacks.

    Examples:

        # Fetch a URL three times; the second and third come from cache
        $ resilient-fetch fetch http://localhost:8000/items/1 --repeat 3

        # Fall back to static data when the upstream keeps failing
        $ resilient-fetch fetch http://localhost:8000/flaky --fallback '{"status": "degraded"}'

        # Run the mock upstream
        $ resilient-fetch serve-mock --error-rate 0.5
    """


@main.command()
@click.argument("url")
@click.option("--method", "-X", default="GET", help="HTTP method")
@click.option("--data", "-d", help="JSON request body")
@click.option("--header", "-H", multiple=True, help="Extra header 'Name: value' (repeatable)")
@click.option("--retries", type=int, help="Retries after the first attempt (overrides config)")
@click.option("--timeout", "-t", type=float, help="Per-attempt timeout in seconds (overrides config)")
@click.option("--fallback", help="Static JSON fallback returned when every attempt fails")
@click.option("--no-cache", is_flag=True, help="Bypass the response cache")
@click.option("--cache-ttl", type=float, help="Cache TTL in seconds (overrides config)")
@click.option("--repeat", "-n", type=int, default=1, show_default=True, help="Issue the request N times")
@click.option("--concurrent", is_flag=True, help="Issue repeated requests concurrently instead of in sequence")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default="config/fetch.yaml",
    help="Path to configuration YAML file",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Also save JSON results to this file")
def fetch(
    url: str,
    method: str,
    data: Optional[str],
    header: Tuple[str, ...],
    retries: Optional[int],
    timeout: Optional[float],
    fallback: Optional[str],
    no_cache: bool,
    cache_ttl: Optional[float],
    repeat: int,
    concurrent: bool,
    config_path: Path,
    log_level: Optional[str],
    as_json: bool,
    output: Optional[Path],
) -> None:
    """Fetch URL through the full resilience cascade."""
    try:
        cli_overrides = {}
        if log_level is not None:
            cli_overrides["log_level"] = log_level.upper()
        config = ConfigManager(config_path).load_config(cli_overrides)

        spec = RequestSpec(
            url=url,
            method=method,
            headers=_parse_headers(header),
            body=_parse_json_option(data, "--data"),
            timeout=timeout,
            max_retries=retries,
            fallback_data=_parse_json_option(fallback, "--fallback"),
            cache_enabled=not no_cache,
            cache_ttl=cache_ttl,
        )

        results, stats, metrics = asyncio.run(
            _run_requests(config, spec, max(repeat, 1), concurrent, show_progress=not as_json)
        )

        formatter = JSONOutputFormatter()
        if output:
            formatter.save(results, stats, metrics, str(output))

        if as_json:
            click.echo(formatter.dumps(results, stats, metrics))
        else:
            _display_results(results, stats, metrics)

        sys.exit(0 if all(result.ok for result in results) else 2)

    except click.ClickException:
        raise
    except ValueError as e:
        raise click.BadParameter(str(e))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)  # Standard exit code for SIGINT
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}", style="bold red")
        sys.exit(1)


async def _run_requests(
    config: FetchClientConfig,
    spec: RequestSpec,
    repeat: int,
    concurrent: bool,
    show_progress: bool,
) -> Tuple[List[FetchResult], FetchStats, RequestMetrics]:
    """Run spec `repeat` times through one client and collect the outcome."""
    async with FetchClient(config) as client:
        if not show_progress:
            results = await _issue(client, spec, repeat, concurrent)
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task(f"[cyan]{spec.method} {spec.url}", total=None)
                results = await _issue(client, spec, repeat, concurrent)
        return results, client.get_stats(), client.get_metrics()


async def _issue(client: FetchClient, spec: RequestSpec, repeat: int, concurrent: bool) -> List[FetchResult]:
    if concurrent:
        return list(await asyncio.gather(*(client.fetch(spec) for _ in range(repeat))))
    return [await client.fetch(spec) for _ in range(repeat)]


def _display_results(results: List[FetchResult], stats: FetchStats, metrics: RequestMetrics) -> None:
    """Display results, stats and metrics as rich tables."""
    result_table = Table(title="Results")
    result_table.add_column("#", justify="right", style="dim")
    result_table.add_column("Status")
    result_table.add_column("From Cache", justify="center")
    result_table.add_column("Attempts", justify="right")
    result_table.add_column("Time (ms)", justify="right")
    result_table.add_column("Data / Error", overflow="fold")

    for index, result in enumerate(results, start=1):
        style = STATUS_STYLES[result.status]
        detail = result.error if result.status is FetchStatus.ERROR else json.dumps(result.data, default=str)
        result_table.add_row(
            str(index),
            f"[{style}]{result.status.value}[/{style}]",
            "yes" if result.from_cache else "no",
            str(result.attempts),
            f"{result.response_time_ms:.1f}",
            detail or "",
        )

    console.print(result_table)
    console.print()

    summary_table = Table(title="Client Summary", show_header=False)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", style="green")
    summary_table.add_row("Cache Size", str(stats.cache_size))
    summary_table.add_row("Open Breakers", str(stats.open_breakers))
    summary_table.add_row("In Flight", str(stats.in_flight))
    summary_table.add_row("Requests", str(metrics.total_requests))
    summary_table.add_row("Cache Hit Rate", f"{metrics.cache_hit_rate * 100:.1f}%")
    summary_table.add_row("Success Rate", f"{metrics.success_rate * 100:.1f}%")
    summary_table.add_row("Avg Response", f"{metrics.average_response_time_ms:.1f} ms")

    console.print(summary_table)


@main.command()
@click.argument("endpoints", nargs=-1, required=True)
@click.option("--timeout", "-t", type=float, default=5.0, show_default=True, help="Probe timeout in seconds")
def health(endpoints: Tuple[str, ...], timeout: float) -> None:
    """Probe each endpoint once with a HEAD request."""
    config = FetchClientConfig(health_check_timeout=timeout)
    records = asyncio.run(_probe_all(config, list(endpoints)))

    table = Table(title="Endpoint Health")
    table.add_column("Endpoint", style="cyan")
    table.add_column("Healthy", justify="center")
    table.add_column("Status", justify="right")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Error", style="red")

    for record in records:
        table.add_row(
            record.endpoint,
            "[green]yes[/green]" if record.healthy else "[red]no[/red]",
            str(record.status_code) if record.status_code is not None else "-",
            f"{record.response_time_ms:.1f}" if record.response_time_ms is not None else "-",
            record.error or "",
        )

    console.print(table)
    sys.exit(0 if all(record.healthy for record in records) else 1)


async def _probe_all(config: FetchClientConfig, endpoints: List[str]) -> List[HealthRecord]:
    async with FetchClient(config) as client:
        return list(await asyncio.gather(
            *(client.health_monitor.probe(endpoint) for endpoint in endpoints)
        ))


@main.command("serve-mock")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", "-p", type=int, default=8000, show_default=True)
@click.option("--error-rate", type=float, default=0.3, show_default=True, help="Failure rate of /flaky")
@click.option("--latency-ms", type=int, default=0, show_default=True, help="Extra latency for data routes")
@click.option("--seed", type=int, help="Random seed for deterministic failures")
def serve_mock(host: str, port: int, error_rate: float, latency_ms: int, seed: Optional[int]) -> None:
    """Run the mock upstream server."""
    import uvicorn

    from resilient_fetch.mock_servers import create_mock_app

    app = create_mock_app(random_seed=seed, error_rate=error_rate, extra_latency_ms=latency_ms)
    console.print(f"[bold cyan]Mock upstream[/bold cyan] on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
