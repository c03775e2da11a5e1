"""
Account lockout guard.

Failed logins are counted per normalized email, whatever the source address,
so credential stuffing against one account is blocked no matter how many IPs
it comes from. Records can exist for emails with no user behind them.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from flask import current_app
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError

from ..datetime_utils import to_iso, utcnow
from ..db import get_session
from ..logging_config import get_logger
from ..models import AccountLockout
from ..security import normalize_identifier

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_LOCKOUT_MINUTES = 30
_INSERT_RETRIES = 3


class AccountLockoutGuard:
    """Failed-attempt counter with a temporary lock once the limit is reached."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        lockout_minutes: int = DEFAULT_LOCKOUT_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.max_attempts = max_attempts
        self.lockout_duration = timedelta(minutes=lockout_minutes)
        self._clock = clock

    def is_locked(self, email: str) -> bool:
        key = normalize_identifier(email)
        now = self._clock()
        with get_session() as session:
            locked_until = session.execute(
                select(AccountLockout.locked_until).where(AccountLockout.email == key)
            ).scalar_one_or_none()
        return locked_until is not None and locked_until > now

    def record_failure(self, email: str, ip: str | None = None) -> int:
        """
        Count one failed attempt and lock the account on reaching the limit.

        Every step is a single conditional statement, so concurrent failures
        accumulate instead of overwriting each other.

        Returns:
            The failed-attempt count after this failure.
        """
        key = normalize_identifier(email)
        for attempt in range(_INSERT_RETRIES):
            try:
                return self._record_failure(key, ip)
            except IntegrityError:
                # Another request created the row first; count on top of it.
                logger.debug("Lockout row race for %s, retry %s", key, attempt + 1)
        return self._record_failure(key, ip)

    def _record_failure(self, key: str, ip: str | None) -> int:
        now = self._clock()
        with get_session() as session:
            # An expired lock starts a fresh count.
            session.execute(
                update(AccountLockout)
                .where(
                    AccountLockout.email == key,
                    AccountLockout.locked_until.is_not(None),
                    AccountLockout.locked_until <= now,
                )
                .values(failed_attempts=0, locked_until=None)
                .execution_options(synchronize_session=False)
            )
            result = session.execute(
                update(AccountLockout)
                .where(AccountLockout.email == key)
                .values(
                    failed_attempts=AccountLockout.failed_attempts + 1,
                    last_attempt=now,
                    last_ip=ip,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                session.execute(
                    insert(AccountLockout).values(
                        email=key, failed_attempts=1, last_attempt=now, last_ip=ip
                    )
                )

            locked = session.execute(
                update(AccountLockout)
                .where(
                    AccountLockout.email == key,
                    AccountLockout.failed_attempts >= self.max_attempts,
                    AccountLockout.locked_until.is_(None),
                )
                .values(locked_until=now + self.lockout_duration)
                .execution_options(synchronize_session=False)
            )
            attempts = session.execute(
                select(AccountLockout.failed_attempts).where(AccountLockout.email == key)
            ).scalar_one()

        if locked.rowcount:
            logger.warning("Account locked after %s failed attempts: %s", attempts, key)
        return attempts

    def clear(self, email: str) -> None:
        key = normalize_identifier(email)
        with get_session() as session:
            session.execute(
                delete(AccountLockout)
                .where(AccountLockout.email == key)
                .execution_options(synchronize_session=False)
            )

    def get_status(self, email: str) -> dict[str, Any]:
        """Diagnostics for support tooling; never returned to API callers."""
        key = normalize_identifier(email)
        now = self._clock()
        with get_session() as session:
            record = session.execute(
                select(AccountLockout).where(AccountLockout.email == key)
            ).scalar_one_or_none()

        if record is None:
            return {"email": key, "failedAttempts": 0, "locked": False, "lockedUntil": None}
        locked = record.locked_until is not None and record.locked_until > now
        return {
            "email": key,
            "failedAttempts": record.failed_attempts,
            "locked": locked,
            "lockedUntil": to_iso(record.locked_until),
            "lastAttempt": to_iso(record.last_attempt),
            "lastIp": record.last_ip,
        }


def get_lockout_guard(clock: Callable[[], datetime] = utcnow) -> AccountLockoutGuard:
    """Build a guard from the current app's configuration."""
    config = current_app.config
    return AccountLockoutGuard(
        max_attempts=int(config.get("LOCKOUT_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
        lockout_minutes=int(config.get("LOCKOUT_DURATION_MINUTES", DEFAULT_LOCKOUT_MINUTES)),
        clock=clock,
    )
