"""Typed failures raised by the service layer.

Every error carries an HTTP status so the application-level exception
handler in ``backoffice.main`` can translate it without the routes having to
catch anything.
"""
from __future__ import annotations

from typing import Any, Optional


class BackofficeError(Exception):
    """Base class for all domain failures."""

    kind = "Error"
    status_code = 400

    def __init__(self, message: str, *, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.kind, "detail": self.message}
        if self.context:
            body["context"] = self.context
        return body


class NotFound(BackofficeError):
    kind = "NotFound"
    status_code = 404


class DuplicateName(BackofficeError):
    kind = "DuplicateName"
    status_code = 409


class MaxDepthExceeded(BackofficeError):
    kind = "MaxDepthExceeded"
    status_code = 400


class InvalidStatus(BackofficeError):
    """Illegal lifecycle transition for the quotation's current status."""

    kind = "InvalidStatus"
    status_code = 409


class OverPayment(BackofficeError):
    kind = "OverPayment"
    status_code = 400


class ValidationError(BackofficeError):
    """Field shape or range violation detected by a service."""

    kind = "ValidationError"
    status_code = 422


class InvariantViolation(BackofficeError):
    """Stored derived state disagrees with its source of truth."""

    kind = "InvariantViolation"
    status_code = 500
