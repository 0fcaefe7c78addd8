"""Sharing of in-flight requests between concurrent identical callers."""

import asyncio
from typing import Awaitable, Callable, Dict, Optional, TypeVar

T = TypeVar("T")


class RequestDeduplicator:
    """
    Tracks in-flight work by signature.

    At most one producer runs per signature at any instant; callers arriving
    while it runs await the same task. The entry is dropped as soon as the
    task settles, whatever the outcome.
    """

    def __init__(self) -> None:
        self._in_flight: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._in_flight)

    def pending(self, signature: str) -> Optional[asyncio.Task]:
        """Return the in-flight task for signature, if any."""
        return self._in_flight.get(signature)

    async def dedupe(self, signature: str, producer: Callable[[], Awaitable[T]]) -> T:
        """
        Run producer for signature, or join the run already in progress.

        Waiters are shielded: cancelling one caller does not cancel the
        shared work the others are waiting on.
        """
        task = self._in_flight.get(signature)
        if task is None:
            task = asyncio.ensure_future(producer())
            self._in_flight[signature] = task
            task.add_done_callback(lambda done: self._release(signature, done))
        return await asyncio.shield(task)

    def _release(self, signature: str, task: asyncio.Task) -> None:
        if self._in_flight.get(signature) is task:
            del self._in_flight[signature]
        if not task.cancelled():
            # Mark the exception retrieved so an unobserved failure is not logged by asyncio
            task.exception()

    def clear(self) -> None:
        """Forget in-flight bookkeeping; running tasks finish on their own."""
        self._in_flight.clear()
