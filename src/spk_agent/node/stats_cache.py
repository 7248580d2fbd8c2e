"""TTL cache for repository statistics."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..models import RepoStats

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


@dataclass(frozen=True)
class CachedStats:
    stats: RepoStats
    captured_at: float


class StatusCache:
    """
    Memoizes an expensive stats query for `ttl` seconds.

    Fresh hits read a single immutable snapshot reference and take no lock.
    Refreshes and invalidations are serialized by `_lock`, so a concurrent
    reader sees either the previous snapshot or the complete new one. An
    invalidation issued while a refresh is in flight waits for it and then
    clears the result, so a mutation is never followed by a stale read.
    """

    def __init__(
        self,
        fetch: Callable[[], RepoStats],
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self.ttl = ttl
        self._clock = clock
        self._cached: Optional[CachedStats] = None
        self._lock = threading.Lock()

    def _fresh(self, cached: Optional[CachedStats]) -> bool:
        return cached is not None and self._clock() - cached.captured_at < self.ttl

    def get(self) -> RepoStats:
        """Return cached stats, refreshing through `fetch` when expired or absent."""
        cached = self._cached
        if self._fresh(cached):
            return cached.stats

        with self._lock:
            # Another caller may have refreshed while we waited
            cached = self._cached
            if self._fresh(cached):
                return cached.stats

            stats = self._fetch()
            self._cached = CachedStats(stats=stats, captured_at=self._clock())
            logger.debug(f"Repo stats refreshed: {stats.repo_size} bytes, {stats.num_pins} pins")
            return stats

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None

    @property
    def snapshot(self) -> Optional[CachedStats]:
        return self._cached
