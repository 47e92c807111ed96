"""Service-level exceptions.

Services raise these; the API layer renders them as ``{"error": message}``
with the carried HTTP status.
"""


class PetPortError(Exception):
    """Base error with an HTTP status."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidRequestError(PetPortError):
    """Client input problem."""
    status_code = 400


class AuthenticationError(PetPortError):
    """Missing or invalid credentials."""
    status_code = 401


class PermissionDeniedError(PetPortError):
    """Authenticated but not allowed."""
    status_code = 403


class NotFoundError(PetPortError):
    """Referenced entity does not exist."""
    status_code = 404


class PaymentProviderError(PetPortError):
    """Stripe failure or misconfiguration."""
    status_code = 500
