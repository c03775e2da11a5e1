"""
Typed failures raised by the services and rendered by the error handlers.

Each exception carries the HTTP status and machine code it maps to, so the
routes never build error bodies by hand.
"""

from __future__ import annotations

from http import HTTPStatus


class SkanError(Exception):
    """Base class for every controlled failure."""

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, status: HTTPStatus | None = None):
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status
        super().__init__(message)


class ValidationError(SkanError):
    """Malformed or empty input."""

    status = HTTPStatus.BAD_REQUEST
    code = "VALIDATION_ERROR"


class AuthError(SkanError):
    """Raised when an authentication attempt is refused."""

    status = HTTPStatus.UNAUTHORIZED
    code = "AUTH_FAILED"


# Same public message for both so a caller cannot tell a locked account from a
# wrong password.
GENERIC_AUTH_MESSAGE = "Invalid email or password. Please try again later."


class InvalidCredentialsError(AuthError):
    def __init__(self) -> None:
        super().__init__(GENERIC_AUTH_MESSAGE)


class AccountLockedError(AuthError):
    def __init__(self) -> None:
        super().__init__(GENERIC_AUTH_MESSAGE)


class InvalidTokenError(SkanError):
    """Token is expired, malformed, badly signed or of the wrong type."""

    status = HTTPStatus.UNAUTHORIZED
    code = "INVALID_TOKEN"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenExpiredError(InvalidTokenError):
    def __init__(self) -> None:
        super().__init__("Token expired")


class AuthorizationError(SkanError):
    """Authenticated, but not allowed to touch this venue or resource."""

    status = HTTPStatus.FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(SkanError):
    status = HTTPStatus.NOT_FOUND
    code = "NOT_FOUND"


class InvalidTransitionError(SkanError):
    status = HTTPStatus.BAD_REQUEST
    code = "INVALID_STATUS"


class RateLimitedError(SkanError):
    status = HTTPStatus.TOO_MANY_REQUESTS
    code = "RATE_LIMITED"

    def __init__(self, retry_after: int, limit: int):
        super().__init__("Too many requests. Please try again later.")
        self.retry_after = retry_after
        self.limit = limit


class PersistenceError(SkanError):
    """Transient store failure; the client may retry."""

    status = HTTPStatus.SERVICE_UNAVAILABLE
    code = "PERSISTENCE_ERROR"
