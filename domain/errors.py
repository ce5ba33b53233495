"""
Domain: error taxonomy for the concierge pipeline.

- Conflict: a guard rejected a status transition (wrong current state).
- NotFound: a referenced lead / client / onboarding record does not exist.
- TokenRejected: a registration token failed verification.
- ValidationFailure: malformed input, raised before any state mutation.
- AccessDenied: a gated feature was requested before the gate opened.

All of these are local and non-fatal; none of them is retried automatically.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for every error the core surfaces to a caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "detail": self.message}


class TransitionConflict(PipelineError):
    """
    Raised when a transition is attempted from a state its guard does not allow.

    `current` is the state found on the record, `attempted` the state the caller
    asked for, `expected` the state (or states) the guard requires.
    """

    def __init__(
        self,
        *,
        current: str,
        attempted: str,
        expected: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.current = current
        self.attempted = attempted
        self.expected = expected
        if message is None:
            message = f"Invalid status transition from {current} to {attempted}"
            if expected:
                message += f". Record must be {expected} first."
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update(
            {
                "current_status": self.current,
                "attempted_status": self.attempted,
                "expected_status": self.expected,
            }
        )
        return body


class NotFoundError(PipelineError):
    def __init__(self, entity: str, identifier: Any) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class TokenErrorKind(str, Enum):
    MALFORMED = "Malformed"
    EXPIRED = "Expired"
    ALREADY_USED = "AlreadyUsed"
    NOT_FOUND = "NotFound"
    ALREADY_REGISTERED = "AlreadyRegistered"


_TOKEN_MESSAGES = {
    TokenErrorKind.MALFORMED: "Invalid registration token",
    TokenErrorKind.EXPIRED: "Registration token has expired",
    TokenErrorKind.ALREADY_USED: "Registration token has already been used",
    TokenErrorKind.NOT_FOUND: "Registration token does not match any approved lead",
    TokenErrorKind.ALREADY_REGISTERED: "This lead has already completed registration",
}


class TokenRejected(PipelineError):
    def __init__(self, kind: TokenErrorKind) -> None:
        self.kind = kind
        super().__init__(_TOKEN_MESSAGES[kind])

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["code"] = self.kind.value
        return body


class ValidationFailure(PipelineError):
    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        return body


class AccessDenied(PipelineError):
    def __init__(self, message: str, **context: Any) -> None:
        self.context = context
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update(self.context)
        return body


__all__ = [
    "PipelineError",
    "TransitionConflict",
    "NotFoundError",
    "TokenErrorKind",
    "TokenRejected",
    "ValidationFailure",
    "AccessDenied",
]
