"""
Repository Layer - Data access abstractions.
"""

from .base_repository import BaseRepository
from .sales_data_repository import SalesDataRepository, DIMENSION_COLUMNS
from .budget_repository import SalesRepBudgetRepository, DivisionalBudgetRepository
from .pricing_repository import PricingRepository, MaterialMappingRepository

__all__ = [
    'BaseRepository',
    'SalesDataRepository',
    'DIMENSION_COLUMNS',
    'SalesRepBudgetRepository',
    'DivisionalBudgetRepository',
    'PricingRepository',
    'MaterialMappingRepository',
]
