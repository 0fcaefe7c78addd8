"""FastAPI mock upstream for exercising the fetch client."""

import asyncio
import os
import random
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Response


def create_mock_app(
    name: str = "mock-upstream",
    random_seed: Optional[int] = None,
    error_rate: float = 0.3,
    extra_latency_ms: int = 0,
    slow_latency_ms: int = 15000
) -> FastAPI:
    """
    Create a FastAPI mock upstream with configurable behavior.

    Args:
        name: Server name reported by /health
        random_seed: Seed for deterministic failures
        error_rate: Probability that /flaky returns a 5xx error (0.0-1.0)
        extra_latency_ms: Additional latency for every data route
        slow_latency_ms: Latency of /slow, meant to exceed client timeouts

    Returns:
        FastAPI application
    """
    app = FastAPI(title=f"Mock API - {name}")
    rng = random.Random(random_seed)
    counters: Dict[str, int] = {"requests": 0}

    async def _delay() -> None:
        counters["requests"] += 1
        if extra_latency_ms > 0:
            await asyncio.sleep(extra_latency_ms / 1000.0)

    @app.get("/items/{item_id}")
    async def get_item(item_id: int):
        """Return a deterministic item."""
        await _delay()
        if item_id < 1:
            raise HTTPException(status_code=404, detail="Item not found")
        return {"id": item_id, "name": f"Item {item_id}", "server": name}

    @app.post("/echo")
    async def echo(payload: Any = Body(default=None)):
        """Echo the JSON body back."""
        await _delay()
        return {"echo": payload, "server": name}

    @app.get("/flaky")
    async def flaky():
        """Fail with a random 5xx at the configured rate."""
        await _delay()
        if rng.random() < error_rate:
            raise HTTPException(status_code=rng.choice([500, 502, 503]), detail="Simulated error")
        return {"status": "ok", "server": name}

    @app.get("/slow")
    async def slow():
        await asyncio.sleep(slow_latency_ms / 1000.0)
        return {"status": "ok", "server": name}

    @app.get("/not-json")
    async def not_json():
        return Response(content="<html>oops</html>", media_type="text/html")

    @app.api_route("/health", methods=["GET", "HEAD"])
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "server": name, "requests": counters["requests"]}

    return app


def create_app() -> FastAPI:
    """
    Factory function for uvicorn --factory.

    Reads MOCK_* environment variables for its behavior.
    """
    seed = os.getenv("MOCK_RANDOM_SEED")
    return create_mock_app(
        name=os.getenv("MOCK_SERVER_NAME", "mock-upstream"),
        random_seed=int(seed) if seed is not None else None,
        error_rate=float(os.getenv("MOCK_ERROR_RATE", 0.3)),
        extra_latency_ms=int(os.getenv("MOCK_EXTRA_LATENCY_MS", 0)),
    )
