"""
Infrastructure Layer - repository implementations and cache hooks.
"""

from .repositories import (
    BaseRepository,
    SalesDataRepository,
    SalesRepBudgetRepository,
    DivisionalBudgetRepository,
    PricingRepository,
    MaterialMappingRepository,
)
from .cache import BudgetCacheInvalidator, invalidate_budget_cache

__all__ = [
    'BaseRepository',
    'SalesDataRepository',
    'SalesRepBudgetRepository',
    'DivisionalBudgetRepository',
    'PricingRepository',
    'MaterialMappingRepository',
    'BudgetCacheInvalidator',
    'invalidate_budget_cache',
]
