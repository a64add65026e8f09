"""Shared dependencies for the routers."""

from typing import Annotated

from fastapi import Depends, HTTPException, status

from kpigate.database import async_session_maker
from kpigate.engine.errors import ErrorKind
from kpigate.engine.notifications import NotificationChannel
from kpigate.engine.workflow import ApprovalWorkflow
from kpigate.schemas.results import OperationResult

channel = NotificationChannel()

_workflow = ApprovalWorkflow(async_session_maker, channel)


def get_workflow() -> ApprovalWorkflow:
    """Dependency for the process-wide workflow."""
    return _workflow


WorkflowDep = Annotated[ApprovalWorkflow, Depends(get_workflow)]

_HTTP_STATUS = {
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID: 422,
    ErrorKind.STORAGE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.ALREADY_IN_FLIGHT: status.HTTP_409_CONFLICT,
}


def raise_for_result(result: OperationResult) -> OperationResult:
    """Turn a failed engine result into an HTTP error."""
    if not result.success:
        raise HTTPException(
            status_code=_HTTP_STATUS.get(result.error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=result.error,
        )
    return result
