"""Analysis Cache - fingerprint-keyed results with time-based expiry.

Entries are evicted lazily on read and by ``cleanup()``. A write never
degrades what is stored: a valid entry computed later than the incoming
result is kept, and an overwrite keeps the later expiry.

``InFlightRegistry`` coalesces concurrent computations for one fingerprint
into a single asyncio task.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from codeweave.core.config import Settings, get_settings
from codeweave.models import AnalysisResult, CachedAnalysis

logger = structlog.get_logger()

Clock = Callable[[], float]


@dataclass
class CacheStats:
    """Cache statistics."""

    size: int = 0
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    average_age: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "average_age": self.average_age,
        }


class AnalysisCache:
    """In-memory store of ``CachedAnalysis`` entries.

    All methods are synchronous. Within one event loop a read-check-write
    sequence therefore never interleaves with another writer.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Clock = time.time,
        settings: Settings | None = None,
    ):
        if ttl_seconds is None:
            ttl_seconds = (settings or get_settings()).cache_ttl_seconds
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, CachedAnalysis] = {}
        self._hits = 0
        self._misses = 0
        self._logger = logger.bind(component="AnalysisCache")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: str) -> bool:
        entry = self._entries.get(fingerprint)
        return entry is not None and entry.is_valid(self.clock())

    def get(self, fingerprint: str) -> AnalysisResult | None:
        """Get a valid result, evicting it if it has expired."""
        entry = self._entries.get(fingerprint)
        if entry is None:
            self._misses += 1
            return None

        if not entry.is_valid(self.clock()):
            del self._entries[fingerprint]
            self._misses += 1
            self._logger.debug("Cache entry expired", fingerprint=fingerprint)
            return None

        self._hits += 1
        return entry.result

    def get_entry(self, fingerprint: str) -> CachedAnalysis | None:
        """Get the stored entry without touching statistics or evicting it."""
        return self._entries.get(fingerprint)

    def put(
        self,
        fingerprint: str,
        result: AnalysisResult,
        ttl: float | None = None,
        computed_at: float | None = None,
    ) -> CachedAnalysis:
        """Store a result.

        Args:
            fingerprint: Source fingerprint
            result: The analysis result
            ttl: Lifetime in seconds (defaults to the cache TTL)
            computed_at: When the computation started (defaults to now)

        Returns:
            The entry that is stored after the write
        """
        ttl = self.ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        now = self.clock()
        timestamp = now if computed_at is None else computed_at
        expires_at = timestamp + ttl

        existing = self._entries.get(fingerprint)
        if existing is not None and existing.is_valid(now):
            if existing.timestamp > timestamp:
                self._logger.debug(
                    "Kept newer cache entry",
                    fingerprint=fingerprint,
                    stored=existing.timestamp,
                    incoming=timestamp,
                )
                return existing
            expires_at = max(expires_at, existing.expires_at)

        entry = CachedAnalysis(result=result, timestamp=timestamp, expires_at=expires_at)
        self._entries[fingerprint] = entry
        return entry

    def invalidate(self, fingerprint: str) -> bool:
        """Remove an entry. Returns whether one was present."""
        return self._entries.pop(fingerprint, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def cleanup(self) -> int:
        """Remove all expired entries and return how many were removed."""
        now = self.clock()
        expired = [fp for fp, entry in self._entries.items() if not entry.is_valid(now)]
        for fingerprint in expired:
            del self._entries[fingerprint]

        if expired:
            self._logger.debug("Expired cache entries removed", count=len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        now = self.clock()
        lookups = self._hits + self._misses
        ages = [now - entry.timestamp for entry in self._entries.values()]
        return CacheStats(
            size=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            hit_rate=round(self._hits / lookups, 4) if lookups else 0.0,
            average_age=round(sum(ages) / len(ages), 4) if ages else 0.0,
        )


class InFlightRegistry:
    """One running computation per fingerprint, shared by all callers."""

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._tasks

    def start(
        self,
        fingerprint: str,
        factory: Callable[[], Awaitable[AnalysisResult]],
    ) -> asyncio.Task:
        """Get the running task for a fingerprint, starting one if needed."""
        task = self._tasks.get(fingerprint)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[fingerprint] = task
            task.add_done_callback(lambda done: self._finish(fingerprint, done))
        return task

    async def join(
        self,
        fingerprint: str,
        factory: Callable[[], Awaitable[AnalysisResult]],
    ) -> AnalysisResult:
        """Wait for the shared computation.

        Cancelling the caller detaches it; the computation keeps running for
        the other waiters and still populates the cache.
        """
        return await asyncio.shield(self.start(fingerprint, factory))

    def _finish(self, fingerprint: str, task: asyncio.Task) -> None:
        if self._tasks.get(fingerprint) is task:
            del self._tasks[fingerprint]
        # Mark the exception retrieved when every waiter has detached
        if not task.cancelled():
            task.exception()
