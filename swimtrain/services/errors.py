"""
Service-level error taxonomy.

Services raise these; route handlers turn them into HTTP responses using
``status_code`` and the client-safe ``message``.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for errors that map to an HTTP status."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or missing input."""

    status_code = 400


class Unauthorized(ServiceError):
    """Missing or rejected credentials."""

    status_code = 401


class Forbidden(ServiceError):
    """Authenticated, but not permitted."""

    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    """Unique-constraint or state conflict."""

    status_code = 409


class InvariantViolation(ServiceError):
    """A business rule guard refused the transition."""

    status_code = 400


class Internal(ServiceError):
    """Unexpected provider or datastore failure."""

    status_code = 500
