"""Error codes and exceptions shared by the session engine and the event lifecycle."""

from __future__ import annotations

from enum import Enum

from .models import EventStatus, Step


class ErrorCode(Enum):
    """Stable error codes, safe to log and to map onto user-facing messages."""

    VALIDATION = "VALIDATION"
    NO_ACTIVE_SESSION = "NO_ACTIVE_SESSION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    STORE = "STORE"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"


class ConvenerError(Exception):
    """Base error with a code and a user-safe message."""

    code: ErrorCode = ErrorCode.STORE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(ConvenerError):
    """Step input was malformed; the same step must be prompted again."""

    code = ErrorCode.VALIDATION

    def __init__(self, step: Step, reason: str) -> None:
        super().__init__(reason)
        self.step = step
        self.reason = reason


class NoActiveSession(ConvenerError):
    code = ErrorCode.NO_ACTIVE_SESSION

    def __init__(self, user_id: int, *, expired: bool = False, stale: bool = False) -> None:
        if stale:
            message = "Preview belongs to a replaced session"
        elif expired:
            message = "Session expired"
        else:
            message = "No active session"
        super().__init__(message)
        self.user_id = user_id
        self.expired = expired
        self.stale = stale


class NotFound(ConvenerError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, event_id: int) -> None:
        super().__init__("Event not found")
        self.event_id = event_id


class Conflict(ConvenerError):
    """Raised when a decision targets an event that is no longer pending."""

    code = ErrorCode.CONFLICT

    def __init__(self, event_id: int, status: EventStatus | None = None) -> None:
        super().__init__("Event already processed")
        self.event_id = event_id
        self.status = status


class StoreError(ConvenerError):
    code = ErrorCode.STORE


class ExternalServiceError(ConvenerError):
    code = ErrorCode.EXTERNAL_SERVICE
