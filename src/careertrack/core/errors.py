from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TransitionErrorKind(str, Enum):
    UNKNOWN_CURRENT = "unknown_current"
    UNKNOWN_TARGET = "unknown_target"
    NO_OP = "no_op"
    TERMINAL = "terminal"
    ILLEGAL_SKIP = "illegal_skip"


class TransitionError(BaseModel):
    """
    Description: Classified reason a status transition was rejected.
    Layer: L1
    Input: current + target status values as given by the caller
    Output: machine-readable kind plus a display message
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: TransitionErrorKind
    current: str
    target: str
    message: str


class TrackerError(Exception):
    """Base class for every error raised by careertrack services and stores."""

    code = "tracker_error"


class ValidationError(TrackerError):
    code = "validation_error"


class InvalidTransitionError(ValidationError):
    """Raised when the state machine rejects a requested status change."""

    code = "invalid_transition"

    def __init__(self, error: TransitionError, application_id: Optional[str] = None) -> None:
        self.error = error
        self.application_id = application_id
        msg = error.message
        if application_id:
            msg = f"Application {application_id}: {msg}"
        super().__init__(msg)

    @property
    def kind(self) -> TransitionErrorKind:
        return self.error.kind


class AuthenticationError(TrackerError):
    code = "not_authenticated"

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class NotFoundError(TrackerError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class PersistenceError(TrackerError):
    code = "persistence_error"


class ConstraintViolationError(PersistenceError):
    code = "constraint_violation"


class ConcurrentModificationError(ConstraintViolationError):
    """The row changed between validation and write (lost compare-and-swap)."""

    code = "concurrent_modification"

    def __init__(self, application_id: str, expected_status: str) -> None:
        self.application_id = application_id
        self.expected_status = expected_status
        super().__init__(
            f"Application {application_id} is no longer in status {expected_status!r}; reload and retry"
        )


class ApplicationLimitError(TrackerError):
    code = "application_limit_reached"

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Application limit reached: at most {limit} applications can be tracked")


def require_user(user_id: Optional[str]) -> str:
    """Raise AuthenticationError for a missing/blank caller before any store is touched."""
    if not user_id or not str(user_id).strip():
        raise AuthenticationError()
    return str(user_id)
