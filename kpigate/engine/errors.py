"""Workflow error taxonomy."""


class ErrorKind:
    CONFLICT = "conflict"
    STORAGE_FAILURE = "storage_failure"
    ALREADY_IN_FLIGHT = "already_in_flight"
    INVALID = "invalid"


class WorkflowError(Exception):
    """Base error for the lock/unlock engine."""

    kind = ErrorKind.STORAGE_FAILURE
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConflictError(WorkflowError):
    """A record already exists for the (subject, date) key."""

    kind = ErrorKind.CONFLICT


class StorageFailure(WorkflowError):
    """Transient storage error or timeout; caller may retry manually."""

    kind = ErrorKind.STORAGE_FAILURE
    retryable = True


class AlreadyInFlight(WorkflowError):
    """Another mutating operation is running in this session."""

    kind = ErrorKind.ALREADY_IN_FLIGHT


class InvalidOperation(WorkflowError):
    """Malformed input or an action the engine does not support."""

    kind = ErrorKind.INVALID
