"""
API v1 - REST endpoints for estimates and budget documents.

Implements:
- Estimate endpoints (calculate preview, save, clear, actual years)
- Budget document endpoints (export, import, summary, divisional delete)
"""
from fastapi import APIRouter

from .estimates import router as estimates_router
from .budget_documents import router as budget_documents_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(estimates_router, prefix="/estimates", tags=["Estimates"])
api_router.include_router(budget_documents_router, prefix="/budget-documents", tags=["Budget Documents"])
