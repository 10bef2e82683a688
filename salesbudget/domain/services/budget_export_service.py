"""
Budget Export Service - builds the offline-editable budget documents.

Actuals for the selected year are shown read-only next to editable budget
inputs for the following year, prefilled with whatever budget is already
stored for that key. Pricing for the actual year drives the client-side
amount and MoRM totals.
"""
import logging
import re
from typing import Any, Dict, List, Tuple

import pandas as pd
from sqlalchemy.orm import Session

from salesbudget.infrastructure.repositories import (
    SalesDataRepository,
    SalesRepBudgetRepository,
    DivisionalBudgetRepository,
)
from salesbudget.domain.entities import DocumentKind, PricingRecord
from salesbudget.modules.document_renderer import render_editable_document
from .budget_import_service import to_proper_case
from .pricing_resolver import PricingResolver

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r'[^A-Za-z0-9]+')


def _safe(value: Any) -> str:
    return _UNSAFE_FILENAME_RE.sub('_', str(value)).strip('_')


def _monthly(frame: pd.DataFrame, keys: List[str]) -> Dict[tuple, List[float]]:
    """
    Pivot (keys..., month, value in KGS) into {key tuple: [12 values in MT]}.

    Labels are proper-cased, the form stored budget rows take on import, so
    actuals and stored budget for the same line share one key.
    """
    lines: Dict[tuple, List[float]] = {}
    if frame.empty:
        return lines
    for row in frame.itertuples(index=False):
        key = tuple(to_proper_case(getattr(row, k)) for k in keys)
        month = int(row.month)
        if not 1 <= month <= 12:
            continue
        lines.setdefault(key, [0.0] * 12)[month - 1] += float(row.value or 0) / 1000
    return lines


def _pricing_payload(pricing_map: Dict[str, PricingRecord]) -> Dict[str, Dict[str, float]]:
    return {
        key: {'sellingPrice': p.selling_price, 'morm': p.morm_rate}
        for key, p in pricing_map.items()
    }


class BudgetExportService:
    """
    Service for producing editable HTML budget documents.
    """

    def __init__(self, session: Session):
        self.session = session
        self.sales_data_repo = SalesDataRepository(session)
        self.sales_rep_repo = SalesRepBudgetRepository(session)
        self.divisional_repo = DivisionalBudgetRepository(session)
        self.pricing = PricingResolver(session)

    def _build_rows(
        self,
        keys: List[str],
        actual: Dict[tuple, List[float]],
        budget: Dict[tuple, List[float]],
    ) -> List[Dict[str, Any]]:
        rows = []
        for key in sorted(set(actual) | set(budget)):
            actual_values = actual.get(key, [0.0] * 12)
            budget_values = budget.get(key, [0.0] * 12)
            row = dict(zip(keys, key))
            row.update({
                'actual': actual_values,
                'actual_total': sum(actual_values),
                'budget': [v if v else None for v in budget_values],
                'budget_total': sum(budget_values),
            })
            rows.append(row)
        return rows

    def _totals(self, rows: List[Dict[str, Any]], pricing_map: Dict[str, PricingRecord]) -> Dict[str, Any]:
        actual_by_month = [0.0] * 12
        budget_by_month = [0.0] * 12
        amount = morm = 0.0
        for row in rows:
            pricing = PricingResolver.lookup(pricing_map, row['product_group'])
            for i in range(12):
                actual_by_month[i] += row['actual'][i]
                budget_mt = row['budget'][i] or 0.0
                budget_by_month[i] += budget_mt
                amount += budget_mt * 1000 * pricing.selling_price
                morm += budget_mt * 1000 * pricing.morm_rate
        return {
            'actual_mt': sum(actual_by_month),
            'budget_mt': sum(budget_by_month),
            'budget_amount': amount,
            'budget_morm': morm,
            'actual_by_month': actual_by_month,
            'budget_by_month': budget_by_month,
        }

    def export_sales_rep_document(self, division: str, sales_rep: str, actual_year: int) -> Tuple[str, str]:
        """
        Render the editable budget form for one sales rep.

        Args:
            division: Division code
            sales_rep: Sales rep name (matched case-insensitively)
            actual_year: Year whose actuals are shown; the budget is for the next year

        Returns:
            Tuple of (filename, html)
        """
        division = division.upper()
        sales_rep = to_proper_case(sales_rep)
        budget_year = actual_year + 1
        keys = ['customer', 'country', 'product_group']

        actual = _monthly(self.sales_data_repo.get_sales_rep_actuals(division, sales_rep, actual_year), keys)
        stored = self.sales_rep_repo.get_for_key(division, sales_rep, budget_year)
        budget = _monthly(
            pd.DataFrame(
                [(r.customer, r.country, r.product_group, r.month, r.value) for r in stored],
                columns=keys + ['month', 'value'],
            ),
            keys,
        )
        rows = self._build_rows(keys, actual, budget)
        pricing_map = self.pricing.resolve(division, PricingResolver.pricing_year_for(budget_year))
        product_groups = sorted({row['product_group'] for row in rows if row['product_group']})

        html = render_editable_document(DocumentKind.SALES_REP_BUDGET, {
            'form': {
                'division': division,
                'salesRep': sales_rep,
                'actualYear': actual_year,
                'budgetYear': budget_year,
            },
            'rows': rows,
            'totals': self._totals(rows, pricing_map),
            'label_columns': len(keys),
            'pricing_map': _pricing_payload(pricing_map),
            'product_groups': product_groups,
        })
        filename = f"BUDGET_{_safe(division)}_{_safe(sales_rep)}_{budget_year}.html"
        logger.info(
            f"Exported sales rep budget {division}/{sales_rep}/{budget_year}: "
            f"{len(rows)} lines, {len(stored)} stored budget rows"
        )
        return filename, html

    def export_divisional_document(self, division: str, actual_year: int) -> Tuple[str, str]:
        """
        Render the editable divisional budget form (one line per product group).

        Returns:
            Tuple of (filename, html)
        """
        division = division.upper()
        budget_year = actual_year + 1
        keys = ['product_group']

        actual = _monthly(self.sales_data_repo.get_division_actuals(division, actual_year), keys)
        stored = self.divisional_repo.get_for_key(division, budget_year)
        budget = _monthly(
            pd.DataFrame(
                [(r.product_group, r.month, r.value) for r in stored],
                columns=keys + ['month', 'value'],
            ),
            keys,
        )
        rows = self._build_rows(keys, actual, budget)
        pricing_map = self.pricing.resolve(division, PricingResolver.pricing_year_for(budget_year))

        html = render_editable_document(DocumentKind.DIVISIONAL_BUDGET, {
            'form': {
                'division': division,
                'actualYear': actual_year,
                'budgetYear': budget_year,
            },
            'rows': rows,
            'totals': self._totals(rows, pricing_map),
            'label_columns': len(keys),
            'pricing_map': _pricing_payload(pricing_map),
            'product_groups': [row['product_group'] for row in rows],
        })
        filename = f"DIVISIONAL_BUDGET_{_safe(division)}_{budget_year}.html"
        logger.info(f"Exported divisional budget {division}/{budget_year}: {len(rows)} product groups")
        return filename, html
