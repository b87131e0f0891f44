"""
Service-layer exceptions.

Services raise these; a single FastAPI exception handler turns them into
JSON error responses with the matching status code.
"""


class CRMError(Exception):
    """Base exception for expected, user-facing failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CRMError):
    """Input is well-formed JSON but violates a business rule."""

    status_code = 400


class AuthenticationError(CRMError):
    """Credentials (ours or a provider's) are missing, expired or rejected."""

    status_code = 401


class PermissionDeniedError(CRMError):
    status_code = 403


class NotFoundError(CRMError):
    status_code = 404


class ConflictError(CRMError):
    status_code = 409


class ServiceUnavailableError(CRMError):
    """A required upstream (AI provider, Google API) is not available."""

    status_code = 503
