"""
Budget Repository - Data access layer for persisted budget documents.

Both budget tables follow replace semantics: everything stored for a key
is deleted and the new record set inserted in the same transaction.
"""
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from salesbudget.models import SalesRepBudgetRow, DivisionalBudgetRow, DataType
from salesbudget.domain.entities import ExistingBudgetInfo
from .base_repository import BaseRepository


class SalesRepBudgetRepository(BaseRepository[SalesRepBudgetRow]):
    """
    Repository for per-sales-rep budget rows.

    Key: (division, sales_rep, budget_year), matched case-insensitively.
    """

    def __init__(self, session: Session):
        super().__init__(session, SalesRepBudgetRow)

    def _for_key(self, division: str, sales_rep: str, budget_year: int):
        return self.session.query(SalesRepBudgetRow).filter(
            func.upper(SalesRepBudgetRow.division) == division.upper(),
            func.upper(SalesRepBudgetRow.sales_rep) == sales_rep.upper(),
            SalesRepBudgetRow.budget_year == budget_year,
            func.upper(SalesRepBudgetRow.data_type) == DataType.BUDGET.value,
        )

    def get_existing_info(self, division: str, sales_rep: str, budget_year: int) -> ExistingBudgetInfo:
        """
        Row count and last upload provenance for a key.

        Returns:
            ExistingBudgetInfo (record_count 0 when nothing is stored)
        """
        count, last_upload, last_filename = self.session.query(
            func.count(SalesRepBudgetRow.id),
            func.max(SalesRepBudgetRow.uploaded_at),
            func.max(SalesRepBudgetRow.uploaded_filename),
        ).filter(
            func.upper(SalesRepBudgetRow.division) == division.upper(),
            func.upper(SalesRepBudgetRow.sales_rep) == sales_rep.upper(),
            SalesRepBudgetRow.budget_year == budget_year,
            func.upper(SalesRepBudgetRow.data_type) == DataType.BUDGET.value,
        ).one()
        return ExistingBudgetInfo(
            record_count=int(count or 0),
            last_upload=last_upload,
            last_filename=last_filename,
        )

    def get_for_key(self, division: str, sales_rep: str, budget_year: int) -> List[SalesRepBudgetRow]:
        return self._for_key(division, sales_rep, budget_year).order_by(
            SalesRepBudgetRow.customer,
            SalesRepBudgetRow.country,
            SalesRepBudgetRow.product_group,
            SalesRepBudgetRow.month,
        ).all()

    def delete_for_key(self, division: str, sales_rep: str, budget_year: int) -> int:
        """Delete every row stored for a key. Returns the number of rows deleted."""
        return self._for_key(division, sales_rep, budget_year).delete(synchronize_session=False)

    def insert_rows(self, rows: List[Dict], batch_size: int = 500) -> int:
        return self.bulk_insert(rows, batch_size=batch_size)


class DivisionalBudgetRepository(BaseRepository[DivisionalBudgetRow]):
    """
    Repository for division-wide budget rows.

    Key: (division, year).
    """

    def __init__(self, session: Session):
        super().__init__(session, DivisionalBudgetRow)

    def _for_key(self, division: str, year: int):
        return self.session.query(DivisionalBudgetRow).filter(
            func.upper(DivisionalBudgetRow.division) == division.upper(),
            DivisionalBudgetRow.year == year,
        )

    def get_existing_info(self, division: str, year: int) -> ExistingBudgetInfo:
        count, last_upload, last_filename = self.session.query(
            func.count(DivisionalBudgetRow.id),
            func.max(DivisionalBudgetRow.uploaded_at),
            func.max(DivisionalBudgetRow.uploaded_filename),
        ).filter(
            func.upper(DivisionalBudgetRow.division) == division.upper(),
            DivisionalBudgetRow.year == year,
        ).one()
        return ExistingBudgetInfo(
            record_count=int(count or 0),
            last_upload=last_upload,
            last_filename=last_filename,
        )

    def get_for_key(self, division: str, year: int) -> List[DivisionalBudgetRow]:
        return self._for_key(division, year).order_by(
            DivisionalBudgetRow.product_group,
            DivisionalBudgetRow.month,
        ).all()

    def delete_for_key(self, division: str, year: int) -> int:
        """Delete every row stored for a division and year."""
        return self._for_key(division, year).delete(synchronize_session=False)

    def insert_rows(self, rows: List[Dict], batch_size: int = 500) -> int:
        return self.bulk_insert(rows, batch_size=batch_size)
