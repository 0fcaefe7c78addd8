"""TTL cache of last-known-good responses keyed by request signature."""

from typing import Any, Dict, Optional

from resilient_fetch.fetcher.clock import Clock, MonotonicClock
from resilient_fetch.models.data_models import CacheEntry


class CacheStore:
    """
    In-memory TTL cache with a stale-grace window.

    An entry is fresh while its age is at most its TTL, usable as a stale
    fallback for ``stale_grace`` seconds after that, and evicted afterwards.
    When more than ``max_entries`` are held the oldest-stored are dropped.
    """

    def __init__(
        self,
        stale_grace: float = 300.0,
        max_entries: int = 1000,
        clock: Optional[Clock] = None
    ):
        """
        Initialize cache store.

        Args:
            stale_grace: Seconds past TTL during which an entry may serve as fallback
            max_entries: Soft cap on the number of stored entries
            clock: Clock interface for time management (defaults to MonotonicClock)
        """
        self.stale_grace = stale_grace
        self.max_entries = max_entries
        self.clock = clock or MonotonicClock()
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, signature: str) -> bool:
        return signature in self._entries

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return entry.age(now) > entry.ttl + self.stale_grace

    def _lookup(self, signature: str, now: float) -> Optional[CacheEntry]:
        entry = self._entries.get(signature)
        if entry is None:
            return None
        if self._is_expired(entry, now):
            del self._entries[signature]
            return None
        return entry

    def get(self, signature: str, max_age: Optional[float] = None) -> Optional[CacheEntry]:
        """
        Return the entry for signature if it is fresh.

        Args:
            signature: Request signature
            max_age: Override for the entry's own TTL

        Returns:
            The fresh CacheEntry, or None
        """
        now = self.clock.now()
        entry = self._lookup(signature, now)
        if entry is None or not entry.is_fresh(now, max_age):
            return None
        return entry

    def get_stale(self, signature: str) -> Optional[CacheEntry]:
        """Return the entry while it is fresh or within the stale-grace window."""
        return self._lookup(signature, self.clock.now())

    def set(self, signature: str, value: Any, ttl: float) -> None:
        """Store value for signature, replacing any previous entry."""
        now = self.clock.now()
        # Re-insert so dict order stays oldest-stored first
        self._entries.pop(signature, None)
        self._entries[signature] = CacheEntry(value=value, stored_at=now, ttl=ttl)
        self.evict_expired(now)
        self._enforce_cap()

    def evict_expired(self, now: Optional[float] = None) -> int:
        """Drop entries past their stale-grace window; return how many were dropped."""
        if now is None:
            now = self.clock.now()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _enforce_cap(self) -> None:
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def clear(self) -> None:
        self._entries.clear()
