"""Authentication utilities for skan services."""

from .service import AuthService, LoginResult

__all__ = ["AuthService", "LoginResult"]
