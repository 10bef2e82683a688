"""
Database models and SQLAlchemy setup for the Sales Budget Planner.
Quantities are stored in KGS; revenue and margin values are floating point
in the division's reporting currency.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import (
    create_engine, Column, Integer, String, Float, DateTime, Index, UniqueConstraint, text
)
from sqlalchemy.orm import declarative_base, sessionmaker
import enum

from salesbudget.config import get_config

logger = logging.getLogger(__name__)

DATABASE_URL = get_config().database_url
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=_connect_args, echo=get_config().database_echo)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DataType(enum.Enum):
    """Kind of figures stored in the sales data table."""
    ACTUAL = "ACTUAL"
    ESTIMATE = "ESTIMATE"
    BUDGET = "BUDGET"


class ValuesType(enum.Enum):
    """Stored values_type code of each MetricSeries."""
    KGS = "KGS"        # QUANTITY
    AMOUNT = "AMOUNT"  # REVENUE
    MORM = "MORM"      # MARGIN


class SalesDataRow(Base):
    """Actual and estimated monthly figures per dimension and metric."""
    __tablename__ = "sales_data"

    id = Column(Integer, primary_key=True, index=True)
    division = Column(String(20), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    month = Column(Integer, nullable=False)
    data_type = Column(String(20), nullable=False, index=True)  # ACTUAL, ESTIMATE
    sales_rep = Column(String(255), default="")
    customer = Column(String(255), default="")
    country = Column(String(255), default="")
    product_group = Column(String(255), default="")
    material = Column(String(255), default="")
    process = Column(String(255), default="")
    values_type = Column(String(10), nullable=False)  # KGS, AMOUNT, MORM
    value = Column(Float, default=0.0)
    source_sheet = Column(String(100), nullable=True)
    uploaded_by = Column(String(100), nullable=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index('ix_sales_data_lookup', 'division', 'year', 'data_type', 'month'),
    )


class SalesRepBudgetRow(Base):
    """Per-sales-rep budget lines imported from budget documents (KGS only)."""
    __tablename__ = "sales_rep_budget"

    id = Column(Integer, primary_key=True, index=True)
    division = Column(String(20), nullable=False, index=True)
    budget_year = Column(Integer, nullable=False, index=True)
    month = Column(Integer, nullable=False)
    data_type = Column(String(20), nullable=False, default=DataType.BUDGET.value)
    sales_rep = Column(String(255), nullable=False, index=True)
    customer = Column(String(255), nullable=False)
    country = Column(String(255), nullable=False)
    product_group = Column(String(255), nullable=False)
    material = Column(String(255), default="")
    process = Column(String(255), default="")
    values_type = Column(String(10), nullable=False, default=ValuesType.KGS.value)
    value = Column(Float, nullable=False)
    uploaded_filename = Column(String(500), nullable=True)
    uploaded_at = Column(DateTime, default=utc_now)

    __table_args__ = (
        Index('ix_sales_rep_budget_key', 'division', 'sales_rep', 'budget_year'),
        UniqueConstraint(
            'division', 'budget_year', 'month', 'data_type', 'sales_rep',
            'customer', 'country', 'product_group', 'values_type',
            name='uq_sales_rep_budget_line',
        ),
    )


class DivisionalBudgetRow(Base):
    """Division-wide budget lines per product group (KGS only)."""
    __tablename__ = "divisional_budget"

    id = Column(Integer, primary_key=True, index=True)
    division = Column(String(20), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    month = Column(Integer, nullable=False)
    product_group = Column(String(255), nullable=False)
    material = Column(String(255), default="")
    process = Column(String(255), default="")
    metric = Column(String(10), nullable=False, default=ValuesType.KGS.value)
    value = Column(Float, nullable=False)
    uploaded_filename = Column(String(500), nullable=True)
    uploaded_at = Column(DateTime, default=utc_now)

    __table_args__ = (
        UniqueConstraint('division', 'year', 'month', 'product_group', 'metric', name='uq_divisional_budget_line'),
    )


class ProductPricing(Base):
    """Reference selling price and MoRM rate per product group and year."""
    __tablename__ = "product_pricing"

    id = Column(Integer, primary_key=True, index=True)
    division = Column(String(20), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    product_group = Column(String(255), nullable=False)
    selling_price = Column(Float, nullable=True)  # per KG
    morm_rate = Column(Float, nullable=True)  # margin over raw material per KG


class MaterialMapping(Base):
    """Material and process classification of each product group."""
    __tablename__ = "material_mapping"

    id = Column(Integer, primary_key=True, index=True)
    division = Column(String(20), nullable=False, index=True)
    product_group = Column(String(255), nullable=False)
    material = Column(String(255), default="")
    process = Column(String(255), default="")


def init_db():
    """Initialize the database and create all tables."""
    Base.metadata.create_all(bind=engine)


def get_db():
    """Database session dependency for FastAPI."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_DIVISION_CODE_RE = re.compile(r'^[A-Z0-9]+$')


def bootstrap_divisions(bind=None, divisions: Optional[Iterable[str]] = None) -> list[str]:
    """
    Create the per-division partial indexes used by budget document exports.

    Idempotent (CREATE INDEX IF NOT EXISTS); run once at startup for every
    configured division.

    Returns:
        Division codes that were bootstrapped
    """
    bind = bind or engine
    codes = [d.upper() for d in (divisions or get_config().division_codes)]
    done = []
    with bind.begin() as conn:
        for code in codes:
            if not _DIVISION_CODE_RE.match(code):
                logger.warning(f"Skipping index bootstrap for invalid division code '{code}'")
                continue
            conn.execute(text(
                f"CREATE INDEX IF NOT EXISTS ix_sales_data_{code.lower()}_budget_customers "
                f"ON sales_data (division, year, data_type, sales_rep, customer, country, product_group, month) "
                f"WHERE division = '{code}' AND data_type = 'ACTUAL' AND values_type = 'KGS'"
            ))
            done.append(code)
    logger.info(f"Bootstrapped division indexes: {done}")
    return done
