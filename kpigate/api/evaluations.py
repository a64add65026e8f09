"""Evaluation record endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from kpigate.api.deps import WorkflowDep, raise_for_result
from kpigate.config import settings
from kpigate.database import get_db
from kpigate.schemas.records import (
    BulkApproveRequest,
    EvaluationRecordView,
    RecordStatus,
    SetRecordStatusRequest,
    SubmitEvaluationRequest,
    to_record_view,
)
from kpigate.storage.records import list_records

router = APIRouter()


@router.post(
    "/evaluations",
    response_model=EvaluationRecordView,
    status_code=status.HTTP_201_CREATED,
)
async def submit_evaluation(body: SubmitEvaluationRequest, workflow: WorkflowDep):
    """
    Submit the daily evaluation for one subject.
    Returns 409 if the subject already has an evaluation for that date.
    """
    result = raise_for_result(await workflow.submit_evaluation(**body.model_dump()))
    return result.data


@router.get("/evaluations", response_model=list[EvaluationRecordView])
async def get_evaluations(
    db: Annotated[AsyncSession, Depends(get_db)],
    project: str = settings.all_projects_scope,
    status: RecordStatus | None = None,
):
    """List evaluations in a project (or all projects)."""
    rows = await list_records(db, project, status)
    return [to_record_view(r) for r in rows]


@router.post("/evaluations/status")
async def set_evaluation_status(body: SetRecordStatusRequest, workflow: WorkflowDep):
    """Reviewer decision on one or more evaluations."""
    result = raise_for_result(await workflow.set_record_status(body.record_ids, body.status))
    return {"changed": result.changed}


@router.post("/evaluations/bulk-approve")
async def bulk_approve(body: BulkApproveRequest, workflow: WorkflowDep):
    """Approve every listed evaluation that is still pending."""
    result = raise_for_result(await workflow.bulk_approve_records(body.record_ids))
    return {"requested": len(body.record_ids), "changed": result.changed}
