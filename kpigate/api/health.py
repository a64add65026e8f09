"""Health and metrics endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kpigate import __version__
from kpigate.api.deps import channel
from kpigate.config import settings
from kpigate.database import get_db
from kpigate.storage.records import list_records
from kpigate.storage.requests import count_pending_requests

router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/metrics")
async def metrics(
    db: Annotated[AsyncSession, Depends(get_db)],
    project: str = settings.all_projects_scope,
):
    """Pending work counts for the site summary badge."""
    pending_records = await list_records(db, project, status="pending")
    return {
        "service": "kpigate",
        "version": __version__,
        "project": project,
        "pending_unlock_requests": await count_pending_requests(db, project),
        "pending_evaluations": len(pending_records),
        "subscribers": channel.subscriber_count,
    }
