"""
Append-only security audit trail.

Entries are written in their own session so a failure to record one never
rolls back or fails the operation being audited.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from ..constants import AuditAction
from ..datetime_utils import utcnow
from ..db import independent_session
from ..logging_config import get_logger
from ..models import AuditLog

logger = get_logger(__name__)

MAX_USER_AGENT_LENGTH = 512


def audit_log(
    action: AuditAction | str,
    user_id: str | None = None,
    details: dict[str, Any] | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> bool:
    """
    Persist one audit entry.

    Returns:
        True if the entry was stored, False if it was dropped (the failure is
        logged locally).
    """
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    try:
        with independent_session() as session:
            session.add(
                AuditLog(
                    action=action_value,
                    user_id=user_id,
                    details=details or {},
                    ip=ip,
                    user_agent=(user_agent or "")[:MAX_USER_AGENT_LENGTH] or None,
                    timestamp=utcnow(),
                )
            )
    except (SQLAlchemyError, RuntimeError) as exc:
        logger.error("Audit write failed for %s: %s", action_value, exc)
        return False

    logger.info("AUDIT %s user=%s ip=%s", action_value, user_id or "-", ip or "-")
    return True
