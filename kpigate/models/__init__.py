"""Database models."""

from kpigate.models.evaluation_record import EvaluationRecord
from kpigate.models.unlock_request import UnlockRequest

__all__ = ["EvaluationRecord", "UnlockRequest"]
