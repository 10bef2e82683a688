"""
Pricing Resolver - reference selling price and MoRM rate per product group.

Pure lookup: pricing for a budget year comes from the previous year's
reference table, matched on lower(trim(product_group)). Unknown groups
price at zero.
"""
import logging
from typing import Dict, Iterable, List, Set

from sqlalchemy.orm import Session

from salesbudget.config import get_config
from salesbudget.infrastructure.repositories import PricingRepository
from salesbudget.domain.entities import (
    BudgetRecord, BudgetTotals, PricingRecord, ZERO_PRICING, normalize_product_group,
)

logger = logging.getLogger(__name__)


class PricingResolver:
    """Resolves PricingRecords for (division, year)."""

    def __init__(self, session: Session):
        self.session = session
        self.pricing_repo = PricingRepository(session)

    @staticmethod
    def pricing_year_for(budget_year: int) -> int:
        """Reference year used to price a budget year."""
        return budget_year - get_config().pricing_year_offset

    def resolve(self, division: str, year: int) -> Dict[str, PricingRecord]:
        """
        Load the pricing map for a division and reference year.

        Returns:
            Dict of normalized product group -> PricingRecord
        """
        pricing_map: Dict[str, PricingRecord] = {}
        for row in self.pricing_repo.get_for_year(division, year):
            record = PricingRecord(
                product_group=row.product_group,
                selling_price=float(row.selling_price or 0),
                morm_rate=float(row.morm_rate or 0),
            )
            pricing_map[record.key] = record
        logger.info(f"Loaded {len(pricing_map)} pricing entries for {division} {year}")
        return pricing_map

    @staticmethod
    def lookup(pricing_map: Dict[str, PricingRecord], product_group: str) -> PricingRecord:
        return pricing_map.get(normalize_product_group(product_group), ZERO_PRICING)

    @staticmethod
    def missing_groups(pricing_map: Dict[str, PricingRecord], product_groups: Iterable[str]) -> List[str]:
        """Product groups with no pricing entry, in first-seen order."""
        seen: Set[str] = set()
        missing = []
        for group in product_groups:
            key = normalize_product_group(group)
            if key in seen:
                continue
            seen.add(key)
            if key not in pricing_map:
                missing.append(group)
        return missing

    @classmethod
    def compute_totals(cls, pricing_map: Dict[str, PricingRecord], records: Iterable[BudgetRecord]) -> BudgetTotals:
        """
        Quantity, quantity x selling price, quantity x MoRM rate.

        Records are in KGS and prices are per KG.
        """
        totals = BudgetTotals()
        for record in records:
            pricing = cls.lookup(pricing_map, record.product_group)
            totals.quantity_kgs += record.value
            totals.revenue += record.value * pricing.selling_price
            totals.margin += record.value * pricing.morm_rate
        return totals
