"""
Cache invalidation hook for budget data.

Response caching lives outside this package. Anything holding cached
budget figures registers a callback here; every successful write calls
invalidate_budget_cache(). A failing callback is logged and never fails
the write that triggered it.
"""
import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

BUDGET_CACHE_PATTERN = "budget:*"


class BudgetCacheInvalidator:
    """Process-wide registry of cache invalidation callbacks."""

    _callbacks: List[Callable[[str], None]] = []

    @classmethod
    def register(cls, callback: Callable[[str], None]) -> None:
        if callback not in cls._callbacks:
            cls._callbacks.append(callback)

    @classmethod
    def unregister(cls, callback: Callable[[str], None]) -> None:
        if callback in cls._callbacks:
            cls._callbacks.remove(callback)

    @classmethod
    def clear(cls) -> None:
        cls._callbacks = []

    @classmethod
    def invalidate(cls, pattern: str = BUDGET_CACHE_PATTERN) -> int:
        """
        Call every registered callback with the key pattern.

        Returns:
            Number of callbacks that completed without error
        """
        succeeded = 0
        for callback in list(cls._callbacks):
            try:
                callback(pattern)
                succeeded += 1
            except Exception as e:
                logger.warning(f"Cache invalidation warning: {e}")
        return succeeded


def invalidate_budget_cache(pattern: str = BUDGET_CACHE_PATTERN) -> int:
    """Invalidate all budget-related cache entries (fire-and-forget)."""
    return BudgetCacheInvalidator.invalidate(pattern)
