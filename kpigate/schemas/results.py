"""Operation result returned by every engine call."""

from typing import Any

from pydantic import BaseModel

from kpigate.engine.errors import WorkflowError


class OperationResult(BaseModel):
    """
    Outcome of an engine operation.

    Failures carry a human-readable cause in ``error`` and a machine-readable
    ``error_kind``; no exception crosses the engine boundary.
    """

    success: bool
    error: str | None = None
    error_kind: str | None = None
    retryable: bool = False
    changed: int = 0
    deleted: int = 0
    cascaded: int = 0
    already_resolved: bool = False
    data: Any = None

    @classmethod
    def ok(cls, **kwargs) -> "OperationResult":
        return cls(success=True, **kwargs)

    @classmethod
    def fail(cls, exc: WorkflowError) -> "OperationResult":
        return cls(
            success=False,
            error=exc.message,
            error_kind=exc.kind,
            retryable=exc.retryable,
        )
