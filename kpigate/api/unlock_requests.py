"""Unlock request endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from kpigate.api.deps import WorkflowDep, raise_for_result
from kpigate.config import settings
from kpigate.database import get_db
from kpigate.schemas.unlock_requests import (
    RequestStatus,
    SubmitUnlockRequest,
    UnlockRequestView,
    to_request_view,
)
from kpigate.storage.requests import list_unlock_requests

router = APIRouter()


def _resolution(result) -> dict:
    return {
        "success": result.success,
        "already_resolved": result.already_resolved,
        "changed": result.changed,
        "deleted": result.deleted,
        "cascaded": result.cascaded,
    }


@router.post(
    "/unlock-requests",
    response_model=UnlockRequestView,
    status_code=status.HTTP_201_CREATED,
)
async def submit_unlock_request(body: SubmitUnlockRequest, workflow: WorkflowDep):
    """Ask for a locked evaluation to be reopened."""
    result = raise_for_result(await workflow.submit_unlock_request(**body.model_dump()))
    return result.data


@router.get("/unlock-requests", response_model=list[UnlockRequestView])
async def get_unlock_requests(
    db: Annotated[AsyncSession, Depends(get_db)],
    project: str = settings.all_projects_scope,
    requester_id: str | None = None,
    status: RequestStatus | None = None,
    date: str | None = None,
):
    """List unlock requests, e.g. a supervisor's requests for today."""
    rows = await list_unlock_requests(
        db, project, requester_id=requester_id, status=status, date=date
    )
    return [to_request_view(r) for r in rows]


@router.post("/unlock-requests/{request_id}/approve")
async def approve_unlock_request(request_id: str, workflow: WorkflowDep):
    """
    Approve a request: the locked evaluation is deleted and duplicate
    pending requests for the same subject and date are approved with it.
    """
    return _resolution(raise_for_result(await workflow.approve(request_id)))


@router.post("/unlock-requests/{request_id}/reject")
async def reject_unlock_request(request_id: str, workflow: WorkflowDep):
    """Reject a single request; the evaluation stays locked."""
    return _resolution(raise_for_result(await workflow.reject(request_id)))
