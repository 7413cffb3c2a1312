"""
LRU cache with per-entry expiry.

Thread-safe store backing the instructor view cache. Entries carry their own
deadline, and whole key families can be dropped by prefix.
"""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

V = TypeVar("V")


class LRUCache(Generic[V]):
    """
    Thread-safe LRU cache keyed by string.

    The least recently used entry is evicted when the cache is full. Expired
    entries are dropped lazily on read and during prefix deletion.
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the LRU cache.

        Args:
            max_size: Maximum number of items to store in the cache
            default_ttl_seconds: Lifetime applied when put() is given none (None for no expiration)
            clock: Monotonic time source in seconds
        """
        self.max_size = max_size
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._cache: OrderedDict[str, tuple[V, float | None]] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

        logger.info("LRU cache initialized", max_size=max_size, default_ttl_seconds=default_ttl_seconds)

    def _expired(self, deadline: float | None) -> bool:
        return deadline is not None and self._clock() >= deadline

    def get(self, key: str) -> V | None:
        """
        Get an item from the cache.

        Returns:
            The cached value if found and not expired, None otherwise
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            value, deadline = entry
            if self._expired(deadline):
                del self._cache[key]
                self._misses += 1
                logger.debug("Cache miss due to expiry", cache_key=key)
                return None

            self._cache.move_to_end(key)
            self._hits += 1
            return value

    def put(self, key: str, value: V, ttl_seconds: float | None = None) -> None:
        """
        Put an item into the cache.

        Args:
            key: The key to store
            value: The value to store
            ttl_seconds: Lifetime of this entry; falls back to the default
        """
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        deadline = self._clock() + ttl if ttl is not None else None
        with self._lock:
            if key in self._cache:
                self._cache[key] = (value, deadline)
                self._cache.move_to_end(key)
                return

            if len(self._cache) >= self.max_size:
                oldest_key, _ = self._cache.popitem(last=False)
                self._evictions += 1
                logger.debug("Cache eviction", evicted_key=oldest_key, cache_size=len(self._cache))

            self._cache[key] = (value, deadline)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def delete_by_prefix(self, prefix: str) -> int:
        """
        Delete every entry whose key starts with prefix.

        Returns:
            Number of entries removed
        """
        with self._lock:
            doomed = [key for key in self._cache if key.startswith(prefix)]
            for key in doomed:
                del self._cache[key]
            if doomed:
                logger.debug("Cache prefix delete", prefix=prefix, removed=len(doomed))
            return len(doomed)

    def clear(self) -> None:
        """Clear all items from the cache."""
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._cache.keys())

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary containing cache statistics
        """
        with self._lock:
            total_requests = self._hits + self._misses
            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": (self._hits / total_requests) if total_requests > 0 else 0.0,
                "default_ttl_seconds": self.default_ttl_seconds,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
