"""
JWT Middleware for Flask.

Provides request-level JWT validation and user context injection. The loader
never rejects a request on its own; the route decorators decide.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any

from flask import g, request

from .errors import AuthorizationError, InvalidTokenError, TokenExpiredError
from .jwt_service import extract_token_from_request, verify_access

if TYPE_CHECKING:
    from flask import Flask

logger = logging.getLogger(__name__)


def init_jwt_middleware(app: Flask) -> None:
    """
    Initialize JWT middleware for a Flask app.

    Sets up before_request handler to:
    1. Extract JWT from request
    2. Validate token
    3. Store user info in g.current_user

    Args:
        app: Flask application instance
    """

    @app.before_request
    def load_jwt_user():
        """Load user from JWT token into Flask g object."""
        g.current_user = None
        g.jwt_token = None
        g.jwt_error = None

        token = extract_token_from_request(request)
        if not token:
            return

        try:
            g.current_user = verify_access(token)
            g.jwt_token = token
        except TokenExpiredError as e:
            logger.debug("Expired token on %s", request.path)
            g.jwt_error = e
        except InvalidTokenError as e:
            logger.warning("Invalid token on %s: %s", request.path, e.message)
            g.jwt_error = e


def get_current_user() -> dict[str, Any] | None:
    """
    Get current authenticated user from request context.

    Returns:
        Access token claims if authenticated, None otherwise
    """
    return getattr(g, "current_user", None)


def _require_user() -> dict[str, Any]:
    user = get_current_user()
    if user:
        return user
    error = getattr(g, "jwt_error", None)
    if error is not None:
        raise error
    raise InvalidTokenError("Authentication required")


def jwt_required(f):
    """
    Decorator to require a valid access token for a route.

    Raises InvalidTokenError (401) if no valid token is present.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        _require_user()
        return f(*args, **kwargs)

    return decorated_function


def role_required(required_roles: str | list[str]):
    """
    Decorator factory to require specific role(s) in the access token.

    Args:
        required_roles: Required role(s)

    Returns:
        Decorator that validates role
    """
    if isinstance(required_roles, str):
        required_roles = [required_roles]

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = _require_user()
            if user.get("role") not in required_roles:
                logger.warning(
                    "Role denied: role=%s required=%s path=%s",
                    user.get("role"),
                    required_roles,
                    request.path,
                )
                raise AuthorizationError(
                    f"One of these roles is required: {', '.join(required_roles)}"
                )
            return f(*args, **kwargs)

        return decorated_function

    return decorator
