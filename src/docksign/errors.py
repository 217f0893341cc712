"""Error taxonomy for DockSign.

Services raise these; the API maps them onto HTTP status codes through
``status_code``. Ownership mismatches are always reported as
:class:`NotFoundError` so callers cannot probe for other users' records.
"""

from typing import Any, Optional


class DockSignError(Exception):
    """Base exception for all DockSign errors."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DockSignError):
    """Malformed or missing input. Always the caller's fault."""

    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(DockSignError):
    """No valid caller identity."""

    status_code = 401
    code = "AUTH_FAILED"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class NotFoundError(DockSignError):
    """Resource absent, or not visible to the caller."""

    status_code = 404
    code = "NOT_FOUND"


class ReferenceNotFoundError(ValidationError, NotFoundError):
    """A related record named in the input does not exist.

    Reported as 400 since the request body is what is wrong.
    """

    status_code = 400
    code = "REFERENCE_NOT_FOUND"


class ConflictError(DockSignError):
    """The operation would break a referential invariant."""

    status_code = 400
    code = "CONFLICT"


class DuplicateError(ConflictError):
    """A unique value is already taken."""

    status_code = 409
    code = "DUPLICATE"


class InternalError(DockSignError):
    """Unexpected failure. Detail is logged, never returned."""

    status_code = 500
    code = "INTERNAL_ERROR"
