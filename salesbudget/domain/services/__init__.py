"""
Domain Services - Business logic for estimates, pricing and budget documents.
"""

from .base_period_selector import BasePeriodSelector, normalize_target_months, select_base_period
from .distribution_service import (
    DistributionService, monthly_averages, dimension_totals, dimension_shares, distribute,
)
from .pricing_resolver import PricingResolver
from .document_validation_service import DocumentValidationService
from .budget_import_service import BudgetImportService, to_proper_case, merge_budget_lines
from .budget_export_service import BudgetExportService

__all__ = [
    'BasePeriodSelector',
    'normalize_target_months',
    'select_base_period',
    'DistributionService',
    'monthly_averages',
    'dimension_totals',
    'dimension_shares',
    'distribute',
    'PricingResolver',
    # Budget document protocol
    'DocumentValidationService',
    'BudgetImportService',
    'to_proper_case',
    'merge_budget_lines',
    'BudgetExportService',
]
