"""
Cache-invalidation coordinator.

Write paths call this after their transaction commits so that the next read
of an affected instructor view misses the cache. Invalidation is best-effort:
a failing cache store is logged and the write still succeeds, with staleness
bounded by the entry TTL.
"""

from collections.abc import Iterable

from ..persistence.protocols import CacheStoreProtocol
from ..structured_logging.enhanced_logging_config import get_logger
from .cache_keys import family_prefix

logger = get_logger(__name__)


class CacheInvalidationCoordinator:
    """Drops cached instructor views by (instructor, query family) prefix."""

    def __init__(self, cache_store: CacheStoreProtocol):
        self._cache_store = cache_store

    async def invalidate(self, owner_instructor_id: int, query_kind_prefix: str) -> int:
        """
        Remove every cached view under ``instructor:<owner>:<prefix>``.

        Args:
            owner_instructor_id: Instructor whose views changed
            query_kind_prefix: View family, for example ``pending``

        Returns:
            Number of keys removed; 0 when the store failed
        """
        prefix = family_prefix(owner_instructor_id, query_kind_prefix)
        try:
            removed = await self._cache_store.delete_by_prefix(prefix)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: invalidation failure is absorbed; TTL bounds staleness
            logger.warning(
                "Cache invalidation failed",
                instructor_id=owner_instructor_id,
                prefix=prefix,
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0
        logger.debug("Cache invalidated", instructor_id=owner_instructor_id, prefix=prefix, removed=removed)
        return removed

    async def invalidate_many(self, owner_instructor_id: int, query_kind_prefixes: Iterable[str]) -> int:
        total = 0
        for prefix in query_kind_prefixes:
            total += await self.invalidate(owner_instructor_id, prefix)
        return total
