"""
Exception taxonomy shared by the stores and the HTTP surface.
"""

from __future__ import annotations

from typing import Any, Optional


class HeirloomError(Exception):
    """Base exception carrying the HTTP status it maps to."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Any] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ValidationError(HeirloomError):
    """Malformed input or a violated business rule."""

    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400, details=details)


class NotFoundError(HeirloomError):
    """
    The id (or id + owner) predicate matched nothing.

    Records owned by another user raise this too, so callers cannot tell
    which ids exist.
    """

    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(HeirloomError):
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="UNAUTHORIZED", status_code=401, details=details)


def require(record, label: str):
    """Return ``record`` or raise the uniform not-found error for ``label``."""
    if record is None:
        raise NotFoundError(f"{label} not found")
    return record
