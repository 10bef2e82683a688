"""
Estimate API Endpoints - base-period projection and proportional distribution.

Implements:
- POST /api/v1/estimates/calculate - Preview monthly estimate totals
- POST /api/v1/estimates/save - Distribute and persist ESTIMATE rows
- DELETE /api/v1/estimates - Clear ESTIMATE rows for a division and year
- GET /api/v1/estimates/actual-years - Years with ACTUAL data
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from salesbudget.models import get_db
from salesbudget.domain.entities import MetricSeries
from salesbudget.domain.services import DistributionService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class EstimateRequest(BaseModel):
    """Request model for an estimate preview."""
    division: str = Field(..., min_length=1, max_length=20, description="Division code")
    year: int = Field(..., ge=2000, le=2100, description="Year being estimated")
    months: List[int] = Field(..., min_length=1, description="Target months (1-12)")


class MonthlyEstimateInput(BaseModel):
    """Approved or edited totals for one target month."""
    month: int = Field(..., ge=1, le=12)
    kgs: float = Field(0, description="Quantity total (KGS)")
    amount: float = Field(0, description="Revenue total")
    morm: float = Field(0, description="Margin total")


class EstimateSaveRequest(EstimateRequest):
    """Request model for persisting an estimate."""
    actor: Optional[str] = Field(None, max_length=100, description="User saving the estimate")
    estimates: Optional[List[MonthlyEstimateInput]] = Field(
        None, description="Totals from the preview; recomputed from actuals when omitted"
    )


class MonthlyEstimateResponse(BaseModel):
    month: int
    kgs: float
    amount: float
    morm: float
    record_count: int


class EstimateResponse(BaseModel):
    """Response for an estimate preview."""
    division: str
    year: int
    estimates: List[MonthlyEstimateResponse]
    base_period_months: List[int]
    estimated_months: List[int]
    base_month_count: int


class EstimateSaveResponse(BaseModel):
    """Response for a persisted estimate."""
    division: str
    year: int
    months: List[int]
    base_period_months: List[int]
    dimension_count: int
    records_deleted: int
    records_inserted: int
    message: str


# =============================================================================
# Endpoints
# =============================================================================

@router.post(
    "/calculate",
    response_model=EstimateResponse,
    summary="Preview an estimate",
    description="Average the base-period actuals per metric for each target month. Nothing is written."
)
def calculate_estimate(
    request: EstimateRequest,
    db: Session = Depends(get_db),
):
    logger.info(f"Estimate preview requested for {request.division} {request.year} months {request.months}")
    result = DistributionService(db).calculate_estimate(request.division, request.year, request.months)
    return result.to_dict()


@router.post(
    "/save",
    response_model=EstimateSaveResponse,
    summary="Save an estimate",
    description="Distribute monthly totals across dimensions by base-period share and replace ESTIMATE rows."
)
def save_estimate(
    request: EstimateSaveRequest,
    db: Session = Depends(get_db),
):
    estimate_totals = None
    if request.estimates:
        estimate_totals = {
            e.month: {
                MetricSeries.QUANTITY: e.kgs,
                MetricSeries.REVENUE: e.amount,
                MetricSeries.MARGIN: e.morm,
            }
            for e in request.estimates
        }

    logger.info(f"Saving estimate for {request.division} {request.year} months {request.months}")
    result = DistributionService(db).save_estimate(
        request.division,
        request.year,
        request.months,
        actor=request.actor,
        estimate_totals=estimate_totals,
    )
    return result.to_dict()


@router.delete(
    "",
    summary="Clear estimates",
    description="Delete every ESTIMATE row for a division and year."
)
def clear_estimates(
    division: str = Query(..., min_length=1),
    year: int = Query(...),
    db: Session = Depends(get_db),
):
    deleted = DistributionService(db).clear_estimates(division, year)
    return {
        'division': division.upper(),
        'year': year,
        'records_deleted': deleted,
        'message': f"Deleted {deleted} estimate records",
    }


@router.get(
    "/actual-years",
    summary="List years with actual data",
)
def get_actual_years(
    division: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    years = DistributionService(db).get_actual_years(division)
    return {'division': division.upper(), 'years': years}
