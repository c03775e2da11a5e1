"""
Datetime utilities.

The database stores naive UTC timestamps; everything in the services goes
through these helpers so the representation stays consistent.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (database canonical form)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value: datetime | None) -> str | None:
    """Serialize a naive-UTC datetime as ISO-8601 with a trailing 'Z'."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"
