"""Operational error taxonomy surfaced to API callers."""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Recoverable error with an HTTP status and a stable machine-readable code."""

    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str = "Internal Server Error") -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(AppError):
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad Request") -> None:
        super().__init__(message)


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Not Found") -> None:
        super().__init__(message)


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str = "Conflict") -> None:
        super().__init__(message)


class InvalidTransitionError(BadRequestError):
    """Raised when a status change is not a direct edge of its state machine."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: Any, target: Any) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {_label(current)} to {_label(target)}")


def _label(state: Any) -> str:
    return str(getattr(state, "value", state))
