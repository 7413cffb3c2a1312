"""
Async cache store for instructor views.

Wraps the thread-safe LRU cache behind the async CacheStoreProtocol so the
store can later be swapped for an out-of-process cache without touching
callers.

Each ``delete_by_prefix`` bumps a generation recorded against its prefix.
A reader captures ``generation(key)`` before loading from the database and
passes it back to ``set``; the write is dropped when an invalidation covering
the key happened in between, so a load that raced a write never repopulates
the cache with pre-write rows.
"""

from typing import Any

from ..config.models import CacheConfig
from ..structured_logging.enhanced_logging_config import get_logger
from .lru_cache import LRUCache

logger = get_logger(__name__)


class CacheStore:
    """In-process implementation of CacheStoreProtocol."""

    def __init__(self, cache_config: CacheConfig | None = None, cache: LRUCache[Any] | None = None):
        config = cache_config or CacheConfig()
        self.default_ttl_seconds = config.ttl_seconds
        self._cache: LRUCache[Any] = cache or LRUCache(
            max_size=config.max_size, default_ttl_seconds=config.ttl_seconds
        )
        self._generation = 0
        # One entry per invalidated family prefix, so bounded by instructors x families
        self._prefix_generations: dict[str, int] = {}

    async def get(self, key: str) -> Any | None:
        return self._cache.get(key)

    async def generation(self, key: str) -> int:
        """Latest invalidation generation covering key; 0 if none ever did."""
        return max((g for prefix, g in self._prefix_generations.items() if key.startswith(prefix)), default=0)

    async def set(
        self, key: str, value: Any, ttl_seconds: int | None = None, expected_generation: int | None = None
    ) -> bool:
        """
        Store a value.

        Args:
            key: Cache key
            value: JSON-able value
            ttl_seconds: Entry lifetime, the configured default when None
            expected_generation: Value of ``generation(key)`` read before the
                value was loaded; the write is skipped if it has moved on

        Returns:
            bool: Whether the value was stored
        """
        if expected_generation is not None and await self.generation(key) != expected_generation:
            logger.debug("Cache write skipped after concurrent invalidation", cache_key=key)
            return False
        self._cache.put(key, value, ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds)
        return True

    async def delete_by_prefix(self, prefix: str) -> int:
        self._generation += 1
        self._prefix_generations[prefix] = self._generation
        return self._cache.delete_by_prefix(prefix)

    def get_stats(self) -> dict[str, Any]:
        return self._cache.get_stats()
