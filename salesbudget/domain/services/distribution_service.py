"""
Distribution Service - projects monthly estimates and fans them out by dimension.

Implements the estimate engine:
- Step 1: monthly average per MetricSeries over the base period (rounded)
- Step 2: per-DimensionKey base-period totals
- Step 3: proportional distribution of each month's total by historical share

Invariants:
- For every target month and series, Σ dimension values = monthly total
- A dimension with zero base-period history in a series gets an explicit 0 row
- Rounding happens only at the monthly-average step
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from salesbudget.config import get_config
from salesbudget.models import DataType
from salesbudget.infrastructure.repositories import SalesDataRepository, DIMENSION_COLUMNS
from salesbudget.infrastructure.cache import invalidate_budget_cache
from salesbudget.domain.entities import (
    MetricSeries, MonthlyEstimate, EstimateResult, EstimateSaveResult,
)
from salesbudget.domain.exceptions import PersistenceError, EstimateRequestInvalid
from .base_period_selector import BasePeriodSelector, normalize_target_months

logger = logging.getLogger(__name__)

SERIES_CODES = [s.value for s in MetricSeries]
ESTIMATE_SOURCE = "Calculated"

# Stands in for NULL dimension values while grouping
MISSING_DIMENSION = "\x00"


def round_half_up(value: float) -> float:
    """Round to the nearest integer, halves away from zero."""
    return float(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


# =============================================================================
# Pure calculation steps
# =============================================================================

def monthly_averages(frame: pd.DataFrame, base_month_count: int) -> Dict[MetricSeries, float]:
    """
    Step 1: Σ base-period value / base month count, rounded, per series.

    Series absent from the frame average to 0.
    """
    if base_month_count <= 0:
        raise ValueError("base_month_count must be positive")
    totals = frame.groupby('values_type')['value'].sum() if not frame.empty else pd.Series(dtype=float)
    return {
        series: round_half_up(float(totals.get(series.value, 0.0)) / base_month_count)
        for series in MetricSeries
    }


def dimension_totals(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Step 2: base-period totals per DimensionKey (rows) and series (columns).

    Every series column is present; missing combinations are 0. NULL
    dimension values group together under MISSING_DIMENSION.
    """
    known = frame[frame["values_type"].isin(SERIES_CODES)] if not frame.empty else frame
    if known.empty:
        empty = pd.DataFrame(columns=SERIES_CODES, dtype=float)
        empty.index = pd.MultiIndex.from_tuples([], names=DIMENSION_COLUMNS)
        return empty

    known = known.assign(value=known['value'].astype(float))
    known[DIMENSION_COLUMNS] = known[DIMENSION_COLUMNS].fillna(MISSING_DIMENSION)
    totals = known.groupby(DIMENSION_COLUMNS + ['values_type'])['value'].sum().unstack(
        'values_type', fill_value=0.0
    )
    totals = totals.reindex(columns=SERIES_CODES, fill_value=0.0)
    totals.columns.name = None
    return totals


def dimension_shares(totals: pd.DataFrame) -> pd.DataFrame:
    """
    Each dimension's share of the base-period total per series.

    A series whose base-period total is not positive gives every dimension
    a share of 0.
    """
    base_totals = totals.sum(axis=0)
    denominators = base_totals.where(base_totals > 0)
    return totals.div(denominators, axis=1).fillna(0.0)


def distribute(
    shares: pd.DataFrame,
    month_totals: Dict[int, Dict[MetricSeries, float]],
) -> pd.DataFrame:
    """
    Step 3: monthValue[key][month][series] = monthTotal[series] x share[key][series].

    Args:
        shares: Output of dimension_shares()
        month_totals: Target month -> series -> estimated total

    Returns:
        Long DataFrame with the dimension columns plus month, values_type, value;
        one row per (dimension, month, series)
    """
    columns = DIMENSION_COLUMNS + ['month', 'values_type', 'value']
    frames = []
    for month in sorted(month_totals):
        totals = pd.Series(
            {s.value: float(month_totals[month].get(s, 0.0)) for s in MetricSeries}
        )
        scaled = shares.mul(totals, axis=1).reset_index()
        long = scaled.melt(
            id_vars=DIMENSION_COLUMNS,
            value_vars=SERIES_CODES,
            var_name='values_type',
            value_name='value',
        )
        long['month'] = month
        frames.append(long[columns])

    if not frames:
        return pd.DataFrame(columns=columns)
    return pd.concat(frames, ignore_index=True)


# =============================================================================
# Service
# =============================================================================

class DistributionService:
    """
    Service for calculating and persisting ESTIMATE figures.

    Persistence replaces ESTIMATE rows for (division, year, target months)
    inside one transaction: delete, then batched inserts, then commit.
    """

    def __init__(self, session: Session, batch_size: Optional[int] = None):
        self.session = session
        self.sales_repo = SalesDataRepository(session)
        self.selector = BasePeriodSelector(session)
        self.batch_size = batch_size or get_config().estimate_batch_size

    def _base_frame(self, division: str, year: int, base_months: List[int]) -> pd.DataFrame:
        frame = self.sales_repo.get_actual_frame(division, year, base_months)
        logger.info(f"Loaded {len(frame)} ACTUAL rows for {division} {year} base period {base_months}")
        return frame

    def calculate_estimate(self, division: str, year: int, target_months: List[int]) -> EstimateResult:
        """
        Preview: base period plus per-month, per-series estimated totals.

        Raises:
            NoBasePeriodAvailable: If every ACTUAL month is a target month
        """
        months = normalize_target_months(target_months)
        base_months = self.selector.select(division, year, months)
        frame = self._base_frame(division, year, base_months)

        averages = monthly_averages(frame, len(base_months))
        amount_rows = int((frame['values_type'] == MetricSeries.REVENUE.value).sum()) if not frame.empty else 0
        record_count = int(round_half_up(amount_rows / len(base_months)))

        estimates = [
            MonthlyEstimate(month=m, totals=dict(averages), record_count=record_count)
            for m in months
        ]
        logger.info(f"Monthly averages for {division} {year}: {averages}")
        return EstimateResult(
            division=division.upper(),
            year=year,
            base_period_months=base_months,
            estimated_months=months,
            estimates=estimates,
        )

    def build_estimate_rows(
        self,
        division: str,
        year: int,
        target_months: List[int],
        estimate_totals: Optional[Dict[int, Dict[MetricSeries, float]]] = None,
    ) -> tuple:
        """
        Distribute estimate totals across dimensions without writing anything.

        Args:
            estimate_totals: Optional caller-approved totals per month; when
                omitted the base-period monthly averages are used

        Returns:
            (base_months, distributed DataFrame, dimension count)
        """
        months = normalize_target_months(target_months)
        base_months = self.selector.select(division, year, months)
        frame = self._base_frame(division, year, base_months)

        if estimate_totals is None:
            averages = monthly_averages(frame, len(base_months))
            month_totals = {m: dict(averages) for m in months}
        else:
            missing = [m for m in months if m not in estimate_totals]
            if missing:
                raise EstimateRequestInvalid(f"Estimate totals missing for months: {missing}")
            month_totals = {m: dict(estimate_totals[m]) for m in months}

        totals = dimension_totals(frame)
        distributed = distribute(dimension_shares(totals), month_totals)
        logger.info(f"Distributed {len(months)} months across {len(totals)} dimension combinations")
        return base_months, distributed, len(totals)

    def save_estimate(
        self,
        division: str,
        year: int,
        target_months: List[int],
        actor: Optional[str] = None,
        estimate_totals: Optional[Dict[int, Dict[MetricSeries, float]]] = None,
    ) -> EstimateSaveResult:
        """
        Distribute and persist ESTIMATE rows, replacing any for the same months.

        Raises:
            NoBasePeriodAvailable: Before any write if no base period exists
            PersistenceError: If the transaction fails (rolled back)
        """
        months = normalize_target_months(target_months)
        base_months, distributed, dimension_count = self.build_estimate_rows(
            division, year, months, estimate_totals
        )
        division_code = division.upper()
        now = datetime.now(timezone.utc)
        rows = [
            {
                'division': division_code,
                'year': year,
                'month': int(r['month']),
                'data_type': DataType.ESTIMATE.value,
                **{c: None if r[c] == MISSING_DIMENSION else r[c] for c in DIMENSION_COLUMNS},
                'values_type': r['values_type'],
                'value': float(r['value']),
                'source_sheet': ESTIMATE_SOURCE,
                'uploaded_by': actor,
                'updated_at': now,
            }
            for r in distributed.to_dict('records')
        ]

        try:
            deleted = self.sales_repo.delete_estimates(division_code, year, months)
            logger.info(f"Deleted {deleted} existing estimate records for {division_code} {year} {months}")
            inserted = self.sales_repo.insert_estimates(rows, batch_size=self.batch_size)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.exception(f"Estimate save failed for {division_code} {year}; rolled back")
            raise PersistenceError("estimates", str(e)) from e

        logger.info(f"Inserted {inserted} estimate records for {division_code} {year}")
        invalidate_budget_cache()
        return EstimateSaveResult(
            division=division_code,
            year=year,
            months=months,
            base_period_months=base_months,
            dimension_count=dimension_count,
            records_deleted=deleted,
            records_inserted=inserted,
        )

    def clear_estimates(self, division: str, year: int) -> int:
        """
        Delete every ESTIMATE row for a division and year.

        Returns:
            Number of rows deleted
        """
        division_code = division.upper()
        if self.sales_repo.count_estimates(division_code, year) == 0:
            return 0
        try:
            deleted = self.sales_repo.delete_estimates(division_code, year)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.exception(f"Clearing estimates failed for {division_code} {year}; rolled back")
            raise PersistenceError("estimate removal", str(e)) from e

        logger.info(f"Deleted {deleted} estimate records for {division_code} {year}")
        invalidate_budget_cache()
        return deleted

    def get_actual_years(self, division: str) -> List[int]:
        return self.sales_repo.get_actual_years(division)
