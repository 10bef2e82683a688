"""
Sales Data Repository - Data access layer for actual and estimate figures.

Implements repository pattern for the sales_data table with:
- Base-period month discovery
- Base-period row extraction into pandas frames
- Estimate replacement (delete by division/year/months)
"""
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy import func
from sqlalchemy.orm import Session

from salesbudget.models import SalesDataRow, DataType, ValuesType
from salesbudget.domain.entities import DimensionKey
from .base_repository import BaseRepository


DIMENSION_COLUMNS = DimensionKey.column_names()


class SalesDataRepository(BaseRepository[SalesDataRow]):
    """
    Repository for sales_data rows.

    ACTUAL rows are read-only here; ESTIMATE rows are replaced per
    (division, year, months).
    """

    def __init__(self, session: Session):
        super().__init__(session, SalesDataRow)

    def _scope(self, division: str, year: int, data_type: DataType):
        return self.session.query(SalesDataRow).filter(
            func.upper(SalesDataRow.division) == division.upper(),
            SalesDataRow.year == year,
            SalesDataRow.data_type == data_type.value,
        )

    # =========================================================================
    # Actuals
    # =========================================================================

    def get_actual_months(self, division: str, year: int) -> List[int]:
        """
        Distinct months with ACTUAL data for a division and year.

        Returns:
            Sorted list of months (1-12)
        """
        rows = self.session.query(SalesDataRow.month).filter(
            func.upper(SalesDataRow.division) == division.upper(),
            SalesDataRow.year == year,
            SalesDataRow.data_type == DataType.ACTUAL.value,
        ).distinct().all()
        return sorted(r[0] for r in rows)

    def get_actual_years(self, division: str) -> List[int]:
        """Years with ACTUAL data, most recent first."""
        rows = self.session.query(SalesDataRow.year).filter(
            func.upper(SalesDataRow.division) == division.upper(),
            SalesDataRow.data_type == DataType.ACTUAL.value,
        ).distinct().all()
        return sorted((r[0] for r in rows), reverse=True)

    def get_actual_frame(self, division: str, year: int, months: List[int]) -> pd.DataFrame:
        """
        ACTUAL rows for the given months as a DataFrame.

        Columns: month, values_type, value and the dimension columns.
        NULL dimension values come back as None.
        """
        columns = ['month', 'values_type', 'value'] + DIMENSION_COLUMNS
        if not months:
            return pd.DataFrame(columns=columns)

        rows = self.session.query(
            SalesDataRow.month,
            SalesDataRow.values_type,
            SalesDataRow.value,
            *[getattr(SalesDataRow, c) for c in DIMENSION_COLUMNS],
        ).filter(
            func.upper(SalesDataRow.division) == division.upper(),
            SalesDataRow.year == year,
            SalesDataRow.data_type == DataType.ACTUAL.value,
            SalesDataRow.month.in_(months),
        ).all()

        df = pd.DataFrame([tuple(r) for r in rows], columns=columns)
        if df.empty:
            return df
        df['value'] = pd.to_numeric(df['value'], errors='coerce').fillna(0.0)
        df['values_type'] = df['values_type'].str.upper()
        return df

    def get_sales_rep_actuals(self, division: str, sales_rep: str, year: int) -> pd.DataFrame:
        """
        Monthly ACTUAL quantity (KGS) per customer/country/product group for one sales rep.

        Returns:
            DataFrame with columns customer, country, product_group, month, value
        """
        rows = self.session.query(
            SalesDataRow.customer,
            SalesDataRow.country,
            SalesDataRow.product_group,
            SalesDataRow.month,
            func.sum(SalesDataRow.value),
        ).filter(
            func.upper(SalesDataRow.division) == division.upper(),
            func.upper(func.trim(SalesDataRow.sales_rep)) == sales_rep.strip().upper(),
            SalesDataRow.year == year,
            SalesDataRow.data_type == DataType.ACTUAL.value,
            func.upper(SalesDataRow.values_type) == ValuesType.KGS.value,
        ).group_by(
            SalesDataRow.customer,
            SalesDataRow.country,
            SalesDataRow.product_group,
            SalesDataRow.month,
        ).all()
        return pd.DataFrame(
            [tuple(r) for r in rows],
            columns=['customer', 'country', 'product_group', 'month', 'value'],
        )

    def get_division_actuals(self, division: str, year: int) -> pd.DataFrame:
        """
        Monthly ACTUAL quantity (KGS) per product group for a whole division.

        Returns:
            DataFrame with columns product_group, month, value
        """
        rows = self.session.query(
            SalesDataRow.product_group,
            SalesDataRow.month,
            func.sum(SalesDataRow.value),
        ).filter(
            func.upper(SalesDataRow.division) == division.upper(),
            SalesDataRow.year == year,
            SalesDataRow.data_type == DataType.ACTUAL.value,
            func.upper(SalesDataRow.values_type) == ValuesType.KGS.value,
        ).group_by(
            SalesDataRow.product_group,
            SalesDataRow.month,
        ).all()
        return pd.DataFrame([tuple(r) for r in rows], columns=['product_group', 'month', 'value'])

    # =========================================================================
    # Estimates
    # =========================================================================

    def count_estimates(self, division: str, year: int, months: Optional[List[int]] = None) -> int:
        query = self._scope(division, year, DataType.ESTIMATE)
        if months is not None:
            query = query.filter(SalesDataRow.month.in_(months))
        return query.count()

    def delete_estimates(self, division: str, year: int, months: Optional[List[int]] = None) -> int:
        """
        Delete ESTIMATE rows for a division and year, optionally limited to months.

        Runs inside the caller's transaction.

        Returns:
            Number of rows deleted
        """
        query = self._scope(division, year, DataType.ESTIMATE)
        if months is not None:
            query = query.filter(SalesDataRow.month.in_(months))
        return query.delete(synchronize_session=False)

    def insert_estimates(self, rows: List[Dict], batch_size: int = 500) -> int:
        """Insert ESTIMATE rows in multi-row batches."""
        return self.bulk_insert(rows, batch_size=batch_size)
