"""Evaluation record schemas."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from kpigate.models import EvaluationRecord

RecordStatus = Literal["pending", "approved", "rejected"]

LEGACY_STATUS = "approved"


class SubmitEvaluationRequest(BaseModel):
    """POST /v1/evaluations request."""

    subject_id: str = Field(min_length=1)
    evaluator_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    attitude: int = Field(ge=1, le=10)
    performance: int = Field(ge=1, le=10)
    quality: int = Field(ge=1, le=10)
    appearance: int = Field(ge=1, le=10)


class SetRecordStatusRequest(BaseModel):
    """POST /v1/evaluations/status - reviewer decision on one or more records."""

    record_ids: list[str] = Field(min_length=1)
    status: Literal["approved", "rejected"]


class BulkApproveRequest(BaseModel):
    """POST /v1/evaluations/bulk-approve request."""

    record_ids: list[str] = Field(default_factory=list)


class EvaluationRecordView(BaseModel):
    """Typed view of an evaluation_records row."""

    model_config = {"from_attributes": True}

    record_id: str
    subject_id: str
    evaluator_id: str
    project_id: str
    date: str
    attitude: int
    performance: int
    quality: int
    appearance: int
    average: float = 0.0
    status: RecordStatus = LEGACY_STATUS
    created_at: str

    @field_validator("status", mode="before")
    @classmethod
    def legacy_status(cls, v):
        """Rows written before the review workflow carry no status."""
        return LEGACY_STATUS if v is None else v

    @model_validator(mode="after")
    def compute_average(self):
        scores = (self.attitude, self.performance, self.quality, self.appearance)
        self.average = round(sum(scores) / len(scores), 2)
        return self


def to_record_view(row: EvaluationRecord) -> EvaluationRecordView:
    return EvaluationRecordView.model_validate(row)
