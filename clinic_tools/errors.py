"""
Error kinds raised by the data-tools core.

Callers (routes, CLI) translate these into HTTP responses or Click errors;
the core itself never retries.
"""

from __future__ import annotations

from http import HTTPStatus


class ClinicToolsError(Exception):
    """Base exception for data-tool failures."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"error": self.message}


class ValidationError(ClinicToolsError):
    """Raised when input has the wrong shape (missing mapping, too few ids, bad mode)."""

    status_code = HTTPStatus.BAD_REQUEST


class NotFoundError(ClinicToolsError):
    """Raised when a referenced record no longer exists in the store."""

    status_code = HTTPStatus.NOT_FOUND


class MergeError(ClinicToolsError):
    """Raised when a merge cannot be planned or executed; the store is left untouched."""

    status_code = HTTPStatus.CONFLICT

    def __init__(self, message: str, *, step: str | None = None) -> None:
        super().__init__(message)
        self.step = step

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        if self.step:
            payload["step"] = self.step
        return payload


__all__ = ["ClinicToolsError", "ValidationError", "NotFoundError", "MergeError"]
