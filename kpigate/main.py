"""KPI Gate FastAPI application."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kpigate import __version__
from kpigate.api.evaluations import router as evaluations_router
from kpigate.api.health import router as health_router
from kpigate.api.unlock_requests import router as unlock_requests_router
from kpigate.config import settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="KPI Gate - Evaluation Lock Service",
    description="Daily evaluation locking with an unlock-request approval workflow",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, tags=["Health"])
app.include_router(evaluations_router, prefix="/v1", tags=["Evaluations"])
app.include_router(unlock_requests_router, prefix="/v1", tags=["Unlock Requests"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "KPI Gate", "version": __version__, "docs": "/docs"}
