"""Error taxonomy shared by the stores, the token service and the API.

Learn: services raise these; they never build HTTP responses. Each class
carries the HTTP status it maps to by default, and tokenvault.api.errors
turns them into the JSON error envelope. Routes that need a different
status for the same error (the /auth table answers 400 for most failures)
remap it there, not here.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for every error this service raises on purpose."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Malformed or missing input.

    errors optionally carries per-field details as [{"field", "msg"}];
    request-body validation failures are rendered through this class.
    """

    status_code = 400

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.errors = errors


class AuthenticationError(ServiceError):
    """Bad credentials, bad signature, or inactive token."""

    status_code = 401


class AuthorizationError(ServiceError):
    """Authenticated, but not the owner of the resource."""

    status_code = 403


class NotFoundError(ServiceError):
    """Unknown user or email."""

    status_code = 404


class ConflictError(ServiceError):
    """Duplicate email."""

    status_code = 409


class ConfigurationError(ServiceError):
    """Server is missing required configuration (e.g. the signing secret)."""

    status_code = 500
