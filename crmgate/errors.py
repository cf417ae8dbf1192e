"""Errors raised by route handlers and the auth gate.

Every subclass carries the HTTP status and the ``error`` text of the JSON body,
so a single exception handler can render all of them.
"""

from __future__ import annotations

from typing import Any


class CRMError(Exception):
    """Base class for errors that map to an HTTP error response."""

    status_code = 500

    def __init__(self, error: str, details: str | None = None) -> None:
        super().__init__(error)
        self.error = error
        self.details = details

    def to_body(self) -> dict[str, Any]:
        """Build the JSON response body."""
        body: dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequest(CRMError):
    """Raised when the request is missing or carries malformed input."""

    status_code = 400


class Unauthenticated(CRMError):
    """Raised when no user matches the presented secret key."""

    status_code = 401


class Forbidden(CRMError):
    """Raised when the resolved user lacks the route's required role."""

    status_code = 403

    def __init__(self, required_role: str) -> None:
        super().__init__(f"Forbidden: {required_role} access required.")
        self.required_role = required_role


class NotOwner(CRMError):
    """Raised when a caller with the right role edits a record it does not own."""

    status_code = 403


class NotFound(CRMError):
    """Raised when a requested record does not exist."""

    status_code = 404


class UpstreamFailure(CRMError):
    """Raised when the database fails underneath a request."""

    status_code = 500

    def __init__(self, error: str, cause: BaseException | None = None) -> None:
        super().__init__(error, details=(str(cause) if cause else "") or "Unknown error")
        self.cause = cause
