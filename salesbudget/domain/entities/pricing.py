"""
Pricing reference entity.
"""
from dataclasses import dataclass


def normalize_product_group(value) -> str:
    """Case- and whitespace-insensitive product group key."""
    if value is None:
        return ""
    return str(value).strip().lower()


@dataclass(frozen=True)
class PricingRecord:
    """Selling price and margin-on-raw-material rate per KG for one product group."""
    product_group: str
    selling_price: float = 0.0
    morm_rate: float = 0.0

    @property
    def key(self) -> str:
        return normalize_product_group(self.product_group)


ZERO_PRICING = PricingRecord(product_group="", selling_price=0.0, morm_rate=0.0)
