"""
JWT Service - Token generation and validation for skan staff sessions.

Access tokens are short lived and carry the staff identity used by every
protected route; refresh tokens only carry the user id and can mint a new
access token. Both are stateless.
"""

from __future__ import annotations

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import jwt
from flask import Request, current_app

from .errors import InvalidTokenError, TokenExpiredError

if TYPE_CHECKING:
    from .models import User

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_REQUIRED_CLAIMS = ["sub", "exp", "iat", "iss", "aud"]


def _setting(config_key: str, default: str) -> str:
    """Read from the Flask app config, falling back to the environment."""
    try:
        value = current_app.config.get(config_key)
        if value:
            return value
    except RuntimeError:
        pass
    return os.getenv(config_key, default)


def get_access_token_expiry() -> int:
    """Access token lifetime in minutes."""
    return int(_setting("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", "15"))


def get_refresh_token_expiry() -> int:
    """Refresh token lifetime in days."""
    return int(_setting("JWT_REFRESH_TOKEN_EXPIRES_DAYS", "7"))


def get_issuer() -> str:
    return _setting("JWT_ISSUER", "skan-api")


def get_audience() -> str:
    return _setting("JWT_AUDIENCE", "skan-clients")


def get_jwt_secret() -> str:
    """Get JWT secret key from config or environment."""
    secret = _setting("SECRET_KEY", "") or os.getenv("JWT_SECRET_KEY", "")
    if not secret:
        raise RuntimeError("JWT_SECRET_KEY or SECRET_KEY must be configured")
    return secret


def _as_aware(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def create_access_token(user: User, now: datetime | None = None) -> str:
    """
    Create a JWT access token for a staff user.

    Args:
        user: Authenticated user row
        now: Issue instant (defaults to the current time)

    Returns:
        Encoded JWT token string
    """
    issued_at = _as_aware(now)
    payload = {
        "sub": user.id,
        "uid": user.id,
        "email": user.email,
        "role": user.role,
        "venueId": user.venue_id,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=get_access_token_expiry()),
        "iss": get_issuer(),
        "aud": get_audience(),
    }
    return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)


def create_refresh_token(user: User, now: datetime | None = None) -> str:
    """Create a JWT refresh token; it identifies the user and nothing else."""
    issued_at = _as_aware(now)
    payload = {
        "sub": user.id,
        "uid": user.id,
        "type": REFRESH_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=get_refresh_token_expiry()),
        "iss": get_issuer(),
        "aud": get_audience(),
    }
    return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)


def issue_token_pair(user: User, now: datetime | None = None) -> tuple[str, str]:
    """Return ``(access_token, refresh_token)`` for a freshly authenticated user."""
    return create_access_token(user, now=now), create_refresh_token(user, now=now)


def decode_token(token: str, verify_type: str | None = None) -> dict[str, Any]:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string
        verify_type: Expected token type ('access' or 'refresh')

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        InvalidTokenError: If token is invalid, of the wrong type or missing claims
    """
    if not token:
        raise InvalidTokenError("Missing token")

    try:
        payload = jwt.decode(
            token,
            get_jwt_secret(),
            algorithms=[JWT_ALGORITHM],
            audience=get_audience(),
            issuer=get_issuer(),
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(str(e) or "Invalid token")

    if verify_type and payload.get("type") != verify_type:
        raise InvalidTokenError(f"Expected {verify_type} token")

    if verify_type == ACCESS_TOKEN_TYPE:
        missing = [claim for claim in ("uid", "role", "venueId") if not payload.get(claim)]
        if missing:
            raise InvalidTokenError(f"Token is missing claims: {', '.join(missing)}")

    return payload


def verify_access(token: str) -> dict[str, Any]:
    return decode_token(token, verify_type=ACCESS_TOKEN_TYPE)


def verify_refresh(token: str) -> dict[str, Any]:
    return decode_token(token, verify_type=REFRESH_TOKEN_TYPE)


def extract_token_from_request(request: Request) -> str | None:
    """
    Extract JWT token from request.

    Checks in order:
    1. Authorization header (Bearer token)
    2. X-Access-Token header

    Args:
        request: Flask request object

    Returns:
        Token string if found, None otherwise
    """
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None

    token_header = request.headers.get("X-Access-Token")
    if token_header:
        return token_header.strip() or None

    return None
