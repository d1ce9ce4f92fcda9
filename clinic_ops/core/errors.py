"""Structured business errors.

Every expected failure of the appointment and treatment core is raised as a
``ClinicError`` carrying a machine-readable code, a human message and
contextual details. The API layer renders them as ``{code, message, details}``.
"""

from typing import Any

from fastapi import status


class ClinicError(Exception):
    """Base class for expected, caller-facing failures."""

    code: str = "CLINIC_ERROR"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        """Render the caller-facing error body."""
        return {"code": self.code, "message": self.message, "details": self.details}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code}: {self.message}>"


class NotFoundError(ClinicError):
    """Raised when an appointment, step or patient does not exist."""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(ClinicError):
    """Raised when a record does not belong to the requesting context."""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class BusinessValidationError(ClinicError):
    """Raised for malformed input or an illegal state for the operation."""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidTransitionError(ClinicError):
    """Raised when no edge exists for the current status and action."""

    code = "INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT


class ConcurrentModificationError(ClinicError):
    """Raised when a session counter changed since the caller read it."""

    code = "CONCURRENT_MODIFICATION"
    status_code = status.HTTP_409_CONFLICT


class AlreadyCompleteError(ClinicError):
    """Raised when every session of a step has already been completed."""

    code = "ALREADY_COMPLETE"
    status_code = status.HTTP_409_CONFLICT
