"""
Main FastAPI Application for the Sales Budget Planner.
Serves the estimate and budget document REST endpoints.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from salesbudget import __version__
from salesbudget.models import init_db, bootstrap_divisions
from salesbudget.domain.exceptions import DomainError, PersistenceError
from salesbudget.api.v1 import api_router as v1_router

logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title="Sales Budget Planner",
    description="Estimate distribution and offline-editable budget documents",
    version=__version__,
)

app.include_router(v1_router)


# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    init_db()
    bootstrap_divisions()


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__}


# ------------ Error Handlers ------------

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if isinstance(exc, PersistenceError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    logger.warning(f"{request.method} {request.url.path} failed: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "message": exc.message, "details": exc.details},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
