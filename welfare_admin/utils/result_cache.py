"""Result cache for entity row lists, keyed by query inputs."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Tuple

from ..models import QueryState

logger = logging.getLogger(__name__)

CacheKey = Tuple[Any, ...]


def cache_key(entity: str, state: QueryState) -> CacheKey:
    """(entity, search term, status filter, predicate list) taken verbatim."""
    return (entity,) + state.as_key()


@dataclass
class _Entry:
    rows: List[dict]
    fetched_at: float


class ResultCache:
    """
    Row-list cache with a freshness window, per-entity invalidation and
    at most one in-flight fetch per key.

    Invalidation bumps the entity's generation: a fetch that started before
    the invalidation still answers its own callers but is not stored.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[CacheKey, _Entry] = {}
        self._inflight: Dict[CacheKey, "asyncio.Task[List[dict]]"] = {}
        self._generations: Dict[str, int] = {}
        self._clock = clock
        self.ttl = ttl_seconds
        self._hits = 0
        self._misses = 0

    def _is_fresh(self, entry: _Entry) -> bool:
        return self._clock() - entry.fetched_at < self.ttl

    async def get_or_fetch(self, key: CacheKey, fetch: Callable[[], Awaitable[List[dict]]]) -> List[dict]:
        """Return cached rows for a key, or fetch them once for all concurrent callers."""
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            self._hits += 1
            logger.debug(f"Cache hit for {key[0]}")
            return entry.rows

        task = self._inflight.get(key)
        if task is None:
            self._misses += 1
            generation = self._generations.get(key[0], 0)
            task = asyncio.ensure_future(self._fetch_and_store(key, generation, fetch))
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _fetch_and_store(
        self,
        key: CacheKey,
        generation: int,
        fetch: Callable[[], Awaitable[List[dict]]],
    ) -> List[dict]:
        try:
            rows = await fetch()
            if self._generations.get(key[0], 0) == generation:
                self._entries[key] = _Entry(rows=rows, fetched_at=self._clock())
            return rows
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def invalidate(self, entity: str) -> int:
        """Mark every cached result of an entity stale. Returns the number of dropped entries."""
        self._generations[entity] = self._generations.get(entity, 0) + 1

        stale_keys = [key for key in self._entries if key[0] == entity]
        for key in stale_keys:
            del self._entries[key]

        # Later reads must not join a fetch that began before the invalidation
        for key in [key for key in self._inflight if key[0] == entity]:
            del self._inflight[key]

        logger.info(f"Invalidated {len(stale_keys)} cached results for {entity}")
        return len(stale_keys)

    def clear(self) -> None:
        for entity in {key[0] for key in self._entries} | {key[0] for key in self._inflight}:
            self._generations[entity] = self._generations.get(entity, 0) + 1
        self._entries.clear()
        self._inflight.clear()

    def get_stats(self) -> Dict[str, int]:
        """Get cache statistics."""
        return {
            "entries": len(self._entries),
            "inflight": len(self._inflight),
            "hits": self._hits,
            "misses": self._misses,
        }
