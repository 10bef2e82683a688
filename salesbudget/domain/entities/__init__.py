"""
Domain Entities - value objects for estimates and budget documents.
"""

from .dimensions import DimensionKey, MetricSeries
from .pricing import PricingRecord, ZERO_PRICING, normalize_product_group
from .budget_document import (
    DocumentKind, DocumentMetadata, BudgetRecord,
    DecodedDocument, DraftDocument, FinalDocument,
    RecordError, ValidatedDocument, DRAFT_DATA_FORMAT,
)
from .outcomes import (
    MonthlyEstimate, EstimateResult, EstimateSaveResult,
    ExistingBudgetInfo, BudgetTotals, ImportOutcome,
)

__all__ = [
    'DimensionKey', 'MetricSeries',
    'PricingRecord', 'ZERO_PRICING', 'normalize_product_group',
    'DocumentKind', 'DocumentMetadata', 'BudgetRecord',
    'DecodedDocument', 'DraftDocument', 'FinalDocument',
    'RecordError', 'ValidatedDocument', 'DRAFT_DATA_FORMAT',
    'MonthlyEstimate', 'EstimateResult', 'EstimateSaveResult',
    'ExistingBudgetInfo', 'BudgetTotals', 'ImportOutcome',
]
