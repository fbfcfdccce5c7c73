"""
Error taxonomy for the lead qualification engine.

Extraction misses are not errors; an utterance that matches nothing simply
yields an empty attribute map.
"""

from typing import Any, Optional


class QualificationError(Exception):
    """Base class for errors raised by the qualification engine."""


class InvalidTransitionError(QualificationError):
    """Raised when a stage change is not an edge of the stage graph."""

    def __init__(self, current: Any, target: Any):
        self.current = current
        self.target = target
        super().__init__(f"Invalid state transition from {current} to {target}")


class StateShapeError(QualificationError):
    """Raised when a serialized conversation state has the wrong shape."""

    def __init__(self, message: str, errors: Optional[list] = None):
        self.errors = errors or []
        super().__init__(message)


class RateLimitExceededError(QualificationError):
    """Raised when a session sends more messages than its window allows."""

    def __init__(self, session_id: str, retry_after: int):
        self.session_id = session_id
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded for session {session_id}, retry after {retry_after}s"
        )


class ValidationWarning(UserWarning):
    """
    An attribute value was rejected and discarded.

    Never raised by the reducer: it is logged and returned alongside the
    new state so the turn can proceed.
    """

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Discarded {field}={value!r}: {reason}")

    def to_dict(self) -> dict:
        return {"field": self.field, "value": self.value, "reason": self.reason}
