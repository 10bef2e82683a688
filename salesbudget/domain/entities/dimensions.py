"""
Dimension and metric value objects used by the estimate engine.
"""
from dataclasses import dataclass, astuple, fields
from enum import Enum


class MetricSeries(str, Enum):
    """Independent metric series tracked per dimension (value = stored values_type)."""
    QUANTITY = "KGS"
    REVENUE = "AMOUNT"
    MARGIN = "MORM"


@dataclass(frozen=True)
class DimensionKey:
    """
    Identifies one budget line.

    Used as the grouping key for proportional distribution and as the
    upsert key for persisted rows.
    """
    sales_rep: str = ""
    customer: str = ""
    country: str = ""
    product_group: str = ""
    material: str = ""
    process: str = ""

    @classmethod
    def column_names(cls) -> list:
        """Row column for each field, in key order."""
        return [f.name for f in fields(cls)]

    def as_tuple(self) -> tuple:
        return astuple(self)
