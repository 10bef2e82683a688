"""
Transient results returned to callers; never persisted.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .dimensions import MetricSeries


@dataclass
class MonthlyEstimate:
    """Estimated division-wide totals for one target month."""
    month: int
    totals: Dict[MetricSeries, float]
    record_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'month': self.month,
            'kgs': self.totals.get(MetricSeries.QUANTITY, 0),
            'amount': self.totals.get(MetricSeries.REVENUE, 0),
            'morm': self.totals.get(MetricSeries.MARGIN, 0),
            'record_count': self.record_count,
        }


@dataclass
class EstimateResult:
    """Base period plus per-month, per-series estimate totals."""
    division: str
    year: int
    base_period_months: List[int]
    estimated_months: List[int]
    estimates: List[MonthlyEstimate]

    @property
    def base_month_count(self) -> int:
        return len(self.base_period_months)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'division': self.division,
            'year': self.year,
            'estimates': [e.to_dict() for e in self.estimates],
            'base_period_months': self.base_period_months,
            'estimated_months': self.estimated_months,
            'base_month_count': self.base_month_count,
        }


@dataclass
class EstimateSaveResult:
    """Outcome of persisting a distributed estimate."""
    division: str
    year: int
    months: List[int]
    base_period_months: List[int]
    dimension_count: int
    records_deleted: int
    records_inserted: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'division': self.division,
            'year': self.year,
            'months': self.months,
            'base_period_months': self.base_period_months,
            'dimension_count': self.dimension_count,
            'records_deleted': self.records_deleted,
            'records_inserted': self.records_inserted,
            'message': f"Successfully saved estimates for {len(self.months)} months",
        }


@dataclass
class ExistingBudgetInfo:
    """Provenance of the budget about to be replaced."""
    record_count: int = 0
    last_upload: Optional[datetime] = None
    last_filename: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'record_count': self.record_count,
            'last_upload': self.last_upload.isoformat() if self.last_upload else None,
            'last_filename': self.last_filename,
        }


@dataclass
class BudgetTotals:
    """Quantity plus revenue and margin priced from the reference year."""
    quantity_kgs: float = 0.0
    revenue: float = 0.0
    margin: float = 0.0

    @property
    def quantity_mt(self) -> float:
        return self.quantity_kgs / 1000

    def to_dict(self) -> Dict[str, float]:
        return {
            'kgs': self.quantity_kgs,
            'mt': self.quantity_mt,
            'amount': self.revenue,
            'morm': self.margin,
        }


@dataclass
class ImportOutcome:
    """Result of importing a budget document."""
    division: str
    owner: Optional[str]
    budget_year: int
    existing_budget: ExistingBudgetInfo
    deleted_count: int
    inserted_counts: Dict[MetricSeries, int]
    totals: BudgetTotals
    pricing_year: int
    skipped_records: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    needs_confirmation: bool = False
    records_to_import: int = 0

    @property
    def inserted_count(self) -> int:
        return sum(self.inserted_counts.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metadata': {
                'division': self.division,
                'sales_rep': self.owner,
                'budget_year': self.budget_year,
            },
            'needs_confirmation': self.needs_confirmation,
            'records_to_import': self.records_to_import,
            'existing_budget': self.existing_budget.to_dict(),
            'records_deleted': self.deleted_count,
            'records_inserted': {
                'total': self.inserted_count,
                'kgs': self.inserted_counts.get(MetricSeries.QUANTITY, 0),
                'amount': self.inserted_counts.get(MetricSeries.REVENUE, 0),
                'morm': self.inserted_counts.get(MetricSeries.MARGIN, 0),
            },
            'totals': self.totals.to_dict(),
            'pricing_year': self.pricing_year,
            'skipped_records': self.skipped_records,
            'errors': self.errors,
            'warnings': self.warnings,
        }
