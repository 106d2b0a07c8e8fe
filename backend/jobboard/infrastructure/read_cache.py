"""Read Cache: bounded in-process TTL cache fronting job listing and detail reads.

Invariants:
    - At most `capacity` entries; inserting a NEW key at capacity evicts the
      earliest-inserted key (FIFO, not LRU: reads never reorder entries)
    - Overwriting an existing key keeps its insertion position and never evicts
    - An entry is visible only while now - timestamp <= ttl; expired entries are
      purged on read-miss and by the periodic sweep
    - cached_fetch never stores a None result
    - A job write drops every application read, since those embed the posting
    - cached_fetch gives no single-flight guarantee: concurrent misses may all
      invoke the producer, last write wins
    - One instance per process, constructed and torn down by the app lifespan

Design Decisions:
    - dict preserves insertion order, so FIFO eviction is next(iter(dict))
    - Clock is injectable (time.monotonic by default) so TTL tests need no sleeping
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar
from uuid import UUID

from jobboard.core.listing import canonical_filters

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 100
DEFAULT_TTL_SECONDS = 5 * 60.0

_MISSING = object()


@dataclass
class CacheEntry:
    value: Any
    timestamp: float
    ttl: float


class CacheKeys:
    """Key builders. Prefixes are what the invalidation rules match on."""
    JOBS = "jobs:"
    SEARCH = "search:"
    JOB = "job:"
    APPLICATIONS = "applications:"
    APPLICATION = "application:"
    NOTIFICATIONS = "notifications:"

    @staticmethod
    def jobs(filters: dict | None = None) -> str:
        return f"jobs:{canonical_filters(filters) if filters else 'all'}"

    @staticmethod
    def search(query: str, filters: dict | None = None) -> str:
        return f"search:{query}:{canonical_filters(filters) if filters else ''}"

    @staticmethod
    def job(job_id: UUID | str) -> str:
        return f"job:{job_id}"

    @staticmethod
    def applications(user_id: UUID | str) -> str:
        return f"applications:{user_id}"

    @staticmethod
    def application(application_id: UUID | str) -> str:
        return f"application:{application_id}"

    @staticmethod
    def notifications(user_id: UUID | str) -> str:
        return f"notifications:{user_id}"


class ReadCache:
    """Process-wide TTL cache with FIFO eviction and prefix invalidation."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capacity = capacity
        self.default_ttl = default_ttl
        self._clock = clock
        self._storage: dict[str, CacheEntry] = {}
        self._sweeper: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._storage)

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if key not in self._storage and len(self._storage) >= self.capacity:
            oldest = next(iter(self._storage))
            del self._storage[oldest]
        self._storage[key] = CacheEntry(
            value=value,
            timestamp=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def _lookup(self, key: str) -> Any:
        entry = self._storage.get(key)
        if entry is None:
            return _MISSING
        if self._clock() - entry.timestamp > entry.ttl:
            del self._storage[key]
            return _MISSING
        return entry.value

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def has(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def delete(self, key: str) -> bool:
        return self._storage.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        self._storage.clear()

    def keys(self) -> list[str]:
        return list(self._storage)

    def stats(self) -> dict:
        return {
            "size": len(self._storage),
            "max_size": self.capacity,
            "keys": self.keys(),
        }

    async def cached_fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value for key, or await producer() and cache its result.

        A None result is returned but not cached, so a miss is re-fetched next time.
        """
        cached = self._lookup(key)
        if cached is not _MISSING:
            return cached
        value = await producer()
        if value is not None:
            self.set(key, value, ttl)
        return value

    # ─── Invalidation ───────────────────────────────────────────

    def delete_prefix(self, *prefixes: str) -> int:
        doomed = [k for k in self._storage if k.startswith(prefixes)]
        for key in doomed:
            del self._storage[key]
        return len(doomed)

    def delete_containing(self, fragment: str) -> int:
        doomed = [k for k in self._storage if fragment in k]
        for key in doomed:
            del self._storage[key]
        return len(doomed)

    def invalidate_listings(self) -> int:
        return self.delete_prefix(CacheKeys.JOBS, CacheKeys.SEARCH)

    def invalidate_jobs(self, *job_ids: UUID | str) -> None:
        """Job posting write: its detail key, every listing/search key, and every
        application read, since those embed the posting."""
        for job_id in job_ids:
            self.delete(CacheKeys.job(job_id))
        self.invalidate_listings()
        self.delete_prefix(CacheKeys.APPLICATION, CacheKeys.APPLICATIONS)

    def invalidate_application(
        self,
        application_id: UUID | str | None,
        applicant_id: UUID | str | None,
        job_id: UUID | str | None,
    ) -> None:
        """Application write: the row, its applicant's list, its job's detail, all listings."""
        if application_id is not None:
            self.delete(CacheKeys.application(application_id))
        if applicant_id is not None:
            self.delete(CacheKeys.applications(applicant_id))
        if job_id is not None:
            self.delete(CacheKeys.job(job_id))
        self.invalidate_listings()

    def invalidate_notifications(self, user_id: UUID | str) -> int:
        """Every cached inbox page for the user."""
        return self.delete_prefix(CacheKeys.notifications(user_id))

    def invalidate_user(self, user_id: UUID | str) -> int:
        return self.delete_containing(str(user_id))

    # ─── Sweep lifecycle ────────────────────────────────────────

    def purge_expired(self) -> int:
        now = self._clock()
        doomed = [
            k for k, e in self._storage.items() if now - e.timestamp > e.ttl
        ]
        for key in doomed:
            del self._storage[key]
        return len(doomed)

    def start_sweeper(self, interval_seconds: float) -> asyncio.Task:
        """Start the periodic expiry sweep on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever(interval_seconds))
        return self._sweeper

    async def _sweep_forever(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            purged = self.purge_expired()
            if purged:
                logger.debug(f"Cache sweep purged {purged} entries", extra={"count": purged})

    async def aclose(self) -> None:
        """Stop the sweeper and drop every entry."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        self.clear()
