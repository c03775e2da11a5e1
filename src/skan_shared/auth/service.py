"""Staff authentication: login, token refresh and logout."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from flask import current_app
from sqlalchemy import select, update

from ..constants import AuditAction
from ..datetime_utils import utcnow
from ..db import get_session
from ..errors import AccountLockedError, InvalidCredentialsError, InvalidTokenError
from ..jwt_service import create_access_token, issue_token_pair, verify_refresh
from ..logging_config import get_logger
from ..models import User
from ..security import burn_password_check, normalize_identifier, verify_password
from ..serializers import serialize_user_public
from ..services.audit_service import audit_log
from ..services.lockout_service import AccountLockoutGuard, get_lockout_guard

logger = get_logger(__name__)


@dataclass
class LoginResult:
    access_token: str
    refresh_token: str
    user: dict[str, Any]


class AuthService:
    """
    Orchestrates the lockout guard, password check, token service and audit
    trail. Locked accounts and bad credentials fail with the same message.
    """

    def __init__(
        self,
        lockout_guard: AccountLockoutGuard | None = None,
        clock: Callable[[], datetime] = utcnow,
        demo_user_name: str | None = None,
    ):
        self._clock = clock
        self.demo_user_name = demo_user_name
        self.lockout_guard = lockout_guard or AccountLockoutGuard(clock=clock)

    @classmethod
    def from_app(cls, clock: Callable[[], datetime] = utcnow) -> AuthService:
        return cls(
            lockout_guard=get_lockout_guard(clock=clock),
            clock=clock,
            demo_user_name=current_app.config.get("DEMO_USER_NAME"),
        )

    @staticmethod
    def _find_user(email: str) -> User | None:
        with get_session() as session:
            return session.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def _fail(self, email: str, reason: str, ip: str | None, user_agent: str | None) -> None:
        attempts = self.lockout_guard.record_failure(email, ip)
        logger.warning("Login failed (%s) for %s, attempt %s", reason, email, attempts)
        audit_log(
            AuditAction.LOGIN_FAILED,
            details={"email": email, "reason": reason, "failedAttempts": attempts},
            ip=ip,
            user_agent=user_agent,
        )
        if attempts == self.lockout_guard.max_attempts:
            audit_log(
                AuditAction.ACCOUNT_LOCKED,
                details={"email": email, "failedAttempts": attempts},
                ip=ip,
                user_agent=user_agent,
            )
        raise InvalidCredentialsError()

    def login(
        self,
        email: str,
        password: str,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        email = normalize_identifier(email)

        # Checked before any hashing work is spent on the account.
        if self.lockout_guard.is_locked(email):
            logger.warning("Login blocked for locked account %s", email)
            audit_log(
                AuditAction.LOGIN_BLOCKED,
                details={"email": email},
                ip=ip,
                user_agent=user_agent,
            )
            raise AccountLockedError()

        user = self._find_user(email)
        if user is None or not user.is_active:
            burn_password_check(password)
            self._fail(email, "unknown_user" if user is None else "inactive_user", ip, user_agent)

        if not verify_password(password, user.password_hash, user.password_salt):
            self._fail(email, "invalid_password", ip, user_agent)

        now = self._clock()
        self.lockout_guard.clear(email)
        with get_session() as session:
            session.execute(
                update(User)
                .where(User.id == user.id)
                .values(last_login_at=now)
                .execution_options(synchronize_session=False)
            )
        user.last_login_at = now

        access_token, refresh_token = issue_token_pair(user, now=now)
        audit_log(
            AuditAction.LOGIN_SUCCESS,
            user_id=user.id,
            details={"email": user.email, "role": user.role, "venueId": user.venue_id},
            ip=ip,
            user_agent=user_agent,
        )
        logger.info("Login successful: user %s (role %s)", user.id, user.role)
        return LoginResult(
            access_token=access_token,
            refresh_token=refresh_token,
            user=serialize_user_public(user, fallback_name=self.demo_user_name),
        )

    def refresh(
        self,
        refresh_token: str,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> str:
        """
        Mint a new access token from a refresh token.

        The refresh token itself is neither rotated nor checked against a
        revocation list; it stays valid until it expires.
        """
        claims = verify_refresh(refresh_token)
        user_id = claims.get("uid") or claims.get("sub")

        with get_session() as session:
            user = session.get(User, user_id)
        if user is None or not user.is_active:
            logger.warning("Refresh refused for missing or inactive user %s", user_id)
            raise InvalidTokenError("User is no longer active")

        access_token = create_access_token(user, now=self._clock())
        audit_log(
            AuditAction.TOKEN_REFRESHED,
            user_id=user.id,
            details={"jti": claims.get("jti")},
            ip=ip,
            user_agent=user_agent,
        )
        return access_token

    def logout(
        self,
        claims: dict[str, Any],
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Tokens are stateless; logging out only leaves a trace."""
        audit_log(
            AuditAction.LOGOUT,
            user_id=claims.get("uid"),
            details={"email": claims.get("email")},
            ip=ip,
            user_agent=user_agent,
        )
        logger.info("User %s logged out", claims.get("uid"))
