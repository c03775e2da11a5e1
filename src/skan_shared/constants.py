"""
Application constants and enums.
"""

from decimal import Decimal
from enum import Enum


class OrderStatus(str, Enum):
    NEW = "new"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"

    @classmethod
    def all_values(cls) -> list[str]:
        return [member.value for member in cls]


# Lifecycle position of each status; transitions may only move forward.
ORDER_STATUS_SEQUENCE: tuple[OrderStatus, ...] = (
    OrderStatus.NEW,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SERVED,
)

TERMINAL_STATUSES = {OrderStatus.SERVED}

# Column set on the first entry into a status.
STATUS_TIMESTAMP_FIELDS = {
    OrderStatus.PREPARING: "prepared_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.SERVED: "served_at",
}

ESTIMATED_TIMES = {
    OrderStatus.NEW: "15-20 minutes",
    OrderStatus.PREPARING: "10-15 minutes",
    OrderStatus.READY: "Ready for pickup",
    OrderStatus.SERVED: "Completed",
}


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PENDING = "pending"
    PAID = "paid"


class Roles(str, Enum):
    MANAGER = "manager"
    ADMIN = "admin"
    OWNER = "owner"

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


STAFF_ROLES = [Roles.MANAGER.value, Roles.ADMIN.value, Roles.OWNER.value]


class AuditAction(str, Enum):
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGIN_BLOCKED = "LOGIN_BLOCKED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    LOGOUT = "LOGOUT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    CROSS_VENUE_DENIED = "CROSS_VENUE_DENIED"


class EndpointClass(str, Enum):
    """Rate-limit buckets; each class carries its own window."""

    AUTH = "auth"
    ORDER_CREATE = "order_create"
    STAFF = "staff"
    TRACKING = "tracking"


ORDER_NUMBER_PREFIX = "SKN"
DEFAULT_CUSTOMER_NAME = "Anonymous Customer"

MAX_ITEMS_PER_ORDER = 50
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
MAX_TEXT_LENGTH = 1000
MAX_INSTRUCTIONS_LENGTH = 500

MAX_ITEM_PRICE = 100_000
MAX_ITEM_QUANTITY = 1_000
# Largest value the Numeric(10, 2) total column holds.
MAX_ORDER_TOTAL = Decimal("99999999.99")
