"""
Budget Document API Endpoints - export, offline edit, re-import.

Implements:
- POST /api/v1/budget-documents/sales-rep/export - Editable HTML for a sales rep
- POST /api/v1/budget-documents/divisional/export - Editable HTML for a division
- POST /api/v1/budget-documents/sales-rep/import - Validate and replace a sales rep budget
- POST /api/v1/budget-documents/divisional/import - Validate and replace a divisional budget
- GET /api/v1/budget-documents/sales-rep/summary - Stored budget with recomputed revenue/margin
- DELETE /api/v1/budget-documents/divisional - Delete a divisional budget
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from salesbudget.models import get_db
from salesbudget.domain.services import BudgetExportService, BudgetImportService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class SalesRepExportRequest(BaseModel):
    """Request model for exporting a sales rep budget form."""
    division: str = Field(..., min_length=1, max_length=20, description="Division code")
    sales_rep: str = Field(..., min_length=1, max_length=255, description="Sales rep name")
    actual_year: int = Field(..., ge=2000, le=2100, description="Year of actuals shown; budget is for the next year")


class DivisionalExportRequest(BaseModel):
    """Request model for exporting a divisional budget form."""
    division: str = Field(..., min_length=1, max_length=20, description="Division code")
    actual_year: int = Field(..., ge=2000, le=2100, description="Year of actuals shown; budget is for the next year")


# =============================================================================
# Helpers
# =============================================================================

def _html_download(filename: str, html: str) -> Response:
    return Response(
        content=html,
        media_type="text/html; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _read_upload(file: UploadFile) -> str:
    if file.filename and not file.filename.lower().endswith(('.html', '.htm')):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only HTML files are allowed",
        )
    content = await file.read()
    try:
        return content.decode('utf-8-sig')
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File is not valid UTF-8 text",
        )


# =============================================================================
# Export
# =============================================================================

@router.post(
    "/sales-rep/export",
    summary="Export sales rep budget form",
    description="Download an offline-editable HTML budget form for one sales rep.",
)
def export_sales_rep_document(
    request: SalesRepExportRequest,
    db: Session = Depends(get_db),
):
    filename, html = BudgetExportService(db).export_sales_rep_document(
        request.division, request.sales_rep, request.actual_year
    )
    return _html_download(filename, html)


@router.post(
    "/divisional/export",
    summary="Export divisional budget form",
    description="Download an offline-editable HTML budget form for a whole division.",
)
def export_divisional_document(
    request: DivisionalExportRequest,
    db: Session = Depends(get_db),
):
    filename, html = BudgetExportService(db).export_divisional_document(request.division, request.actual_year)
    return _html_download(filename, html)


# =============================================================================
# Import
# =============================================================================

@router.post(
    "/sales-rep/import",
    summary="Import sales rep budget",
    description="Validate a Final budget document and replace the stored budget for its sales rep and year.",
)
async def import_sales_rep_document(
    file: UploadFile = File(...),
    current_division: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    html = await _read_upload(file)
    logger.info(f"Sales rep budget import: {file.filename} ({len(html)} chars)")
    outcome = BudgetImportService(db).import_sales_rep_document(
        html, filename=file.filename, current_division=current_division
    )
    result = outcome.to_dict()
    result['success'] = True
    result['message'] = f"Successfully imported {outcome.inserted_count} budget records"
    return result


@router.post(
    "/divisional/import",
    summary="Import divisional budget",
    description=(
        "Validate a Final divisional budget document. When a budget already exists and "
        "confirm_replace is false, nothing is written and needs_confirmation is returned."
    ),
)
async def import_divisional_document(
    file: UploadFile = File(...),
    current_division: Optional[str] = Form(None),
    confirm_replace: bool = Form(False),
    db: Session = Depends(get_db),
):
    html = await _read_upload(file)
    logger.info(f"Divisional budget import: {file.filename} ({len(html)} chars)")
    outcome = BudgetImportService(db).import_divisional_document(
        html,
        filename=file.filename,
        confirm_replace=confirm_replace,
        current_division=current_division,
    )
    result = outcome.to_dict()
    result['success'] = True
    if outcome.needs_confirmation:
        result['message'] = (
            f"A divisional budget for {outcome.division} {outcome.budget_year} already exists "
            f"({outcome.existing_budget.record_count} records). Confirm to replace it."
        )
    else:
        result['message'] = f"Successfully imported {outcome.inserted_count} divisional budget records"
    return result


# =============================================================================
# Read / delete
# =============================================================================

@router.get(
    "/sales-rep/summary",
    summary="Sales rep budget summary",
    description="Stored budget per month and product group with revenue and margin priced on read.",
)
def get_sales_rep_summary(
    division: str = Query(..., min_length=1),
    sales_rep: str = Query(..., min_length=1),
    budget_year: int = Query(...),
    db: Session = Depends(get_db),
):
    return BudgetImportService(db).get_sales_rep_summary(division, sales_rep, budget_year)


@router.delete(
    "/divisional",
    summary="Delete divisional budget",
)
def delete_divisional_budget(
    division: str = Query(..., min_length=1),
    year: int = Query(...),
    db: Session = Depends(get_db),
):
    deleted = BudgetImportService(db).delete_divisional_budget(division, year)
    return {
        'division': division.upper(),
        'year': year,
        'records_deleted': deleted,
        'message': f"Deleted {deleted} divisional budget records for {division.upper()} {year}",
    }
