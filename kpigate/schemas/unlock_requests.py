"""Unlock request schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from kpigate.models import UnlockRequest

RequestStatus = Literal["pending", "approved", "rejected"]


class SubmitUnlockRequest(BaseModel):
    """POST /v1/unlock-requests request."""

    subject_id: str = Field(min_length=1)
    subject_name: str = ""
    requester_id: str = Field(min_length=1)
    requester_name: str = ""
    project_id: str = Field(min_length=1)
    reason: str
    target_record_id: str | None = None
    date: str | None = Field(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$")


class UnlockRequestView(BaseModel):
    """Typed view of an unlock_requests row."""

    model_config = {"from_attributes": True}

    request_id: str
    subject_id: str
    subject_name: str
    requester_id: str
    requester_name: str
    project_id: str
    target_record_id: str | None = None
    date: str
    reason: str
    status: RequestStatus
    created_at: str


def to_request_view(row: UnlockRequest) -> UnlockRequestView:
    return UnlockRequestView.model_validate(row)
