"""
Pricing Repository - Read-only access to reference pricing and material mapping.
"""
from typing import Dict, List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from salesbudget.models import ProductPricing, MaterialMapping
from .base_repository import BaseRepository


class PricingRepository(BaseRepository[ProductPricing]):
    """Repository for product_pricing rows keyed by (division, year)."""

    def __init__(self, session: Session):
        super().__init__(session, ProductPricing)

    def get_for_year(self, division: str, year: int) -> List[ProductPricing]:
        """All pricing rows for a division and year with a product group set."""
        return self.session.query(ProductPricing).filter(
            func.upper(ProductPricing.division) == division.upper(),
            ProductPricing.year == year,
            ProductPricing.product_group.isnot(None),
        ).all()


class MaterialMappingRepository(BaseRepository[MaterialMapping]):
    """Repository for material_mapping rows."""

    def __init__(self, session: Session):
        super().__init__(session, MaterialMapping)

    def get_map(self, division: str) -> Dict[str, Tuple[str, str]]:
        """
        Material and process per product group for a division.

        Returns:
            Dict of lower(trim(product_group)) -> (material, process)
        """
        rows = self.session.query(MaterialMapping).filter(
            func.upper(MaterialMapping.division) == division.upper(),
        ).all()
        return {
            (r.product_group or '').strip().lower(): (r.material or '', r.process or '')
            for r in rows
        }
