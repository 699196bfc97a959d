"""Typed scheduling errors.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API layer maps it to. Services raise these; they are never logged and dropped.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional


class SchedulingError(Exception):
    code = "SCHEDULING_ERROR"
    status_code = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"code": self.code, "message": self.message}
        detail.update({k: v for k, v in self.context.items() if v is not None})
        return detail


class ValidationError(SchedulingError):
    """Malformed input; rejected before anything is persisted."""

    code = "VALIDATION_ERROR"
    status_code = 422


class NotFoundError(SchedulingError):
    code = "NOT_FOUND"
    status_code = 404


class SlotUnavailableError(SchedulingError):
    """Requested slot is outside the policy window, blocked, or already taken."""

    code = "SLOT_UNAVAILABLE"
    status_code = 409


class InvalidStateError(SchedulingError):
    code = "INVALID_STATE"
    status_code = 409


class CooldownError(SchedulingError):
    code = "COOLDOWN"
    status_code = 409

    def __init__(self, message: str, *, available_at: datetime, retry_after_seconds: int) -> None:
        super().__init__(message, available_at=available_at.isoformat(), retry_after_seconds=retry_after_seconds)
        self.available_at = available_at
        self.retry_after_seconds = retry_after_seconds


def not_found(kind: str, ident: Optional[object]) -> NotFoundError:
    return NotFoundError(f"{kind} not found", resource=kind.lower(), id=str(ident))
