"""
Domain Layer - Core business entities for estimates and budget documents.

This module contains:
- entities/: Value objects (DimensionKey, MetricSeries, budget document variants, outcomes)
- services/: Domain services (base period, distribution, document validation, import)
"""

from .entities.dimensions import DimensionKey, MetricSeries
from .entities.budget_document import DocumentKind, DraftDocument, FinalDocument

__all__ = [
    'DimensionKey', 'MetricSeries',
    'DocumentKind', 'DraftDocument', 'FinalDocument',
]
