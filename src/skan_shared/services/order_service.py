"""
Order service: creation, status transitions, staff views and public tracking.

Functions return ORM rows detached from their session (the session factory
keeps attributes loaded after commit); the API layer serializes them.
Failures are raised as the typed errors from ``skan_shared.errors``.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError

from ..constants import (
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_PAGE_SIZE,
    MAX_INSTRUCTIONS_LENGTH,
    MAX_ITEM_PRICE,
    MAX_ITEM_QUANTITY,
    MAX_ITEMS_PER_ORDER,
    MAX_ORDER_TOTAL,
    MAX_PAGE_SIZE,
    ORDER_NUMBER_PREFIX,
    STAFF_ROLES,
    AuditAction,
    OrderStatus,
    PaymentStatus,
)
from ..datetime_utils import utcnow
from ..db import get_session
from ..errors import AuthorizationError, NotFoundError, PersistenceError, ValidationError
from ..logging_config import get_logger
from ..models import Order, OrderSequence
from .audit_service import audit_log
from .order_state_machine import order_state_machine, parse_status

logger = get_logger(__name__)

CENTS = Decimal("0.01")
_SEQUENCE_RETRIES = 3
_TRANSITION_RETRIES = 5


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return amount


def _to_quantity(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return value


def _normalize_items(items: Any) -> tuple[list[dict[str, Any]], Decimal]:
    """Validate the item list and compute the order total from it."""
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item")
    if len(items) > MAX_ITEMS_PER_ORDER:
        raise ValidationError(f"Order cannot contain more than {MAX_ITEMS_PER_ORDER} items")

    normalized: list[dict[str, Any]] = []
    total = Decimal("0")
    for index, raw in enumerate(items):
        if hasattr(raw, "model_dump"):
            raw = raw.model_dump(by_alias=True)
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        name = str(raw.get("name") or "").strip()
        if not name:
            raise ValidationError(f"items[{index}].name is required")
        price = _to_decimal(raw.get("price"), f"items[{index}].price")
        if price <= 0:
            raise ValidationError(f"items[{index}].price must be greater than 0")
        if price > MAX_ITEM_PRICE:
            raise ValidationError(f"items[{index}].price cannot exceed {MAX_ITEM_PRICE}")
        quantity = _to_quantity(raw.get("quantity"), f"items[{index}].quantity")
        if quantity > MAX_ITEM_QUANTITY:
            raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_ITEM_QUANTITY}")

        total += price * quantity
        normalized.append(
            {
                "id": str(raw.get("id") or ""),
                "name": name,
                "nameAlbanian": raw.get("nameAlbanian") or None,
                "price": float(price),
                "quantity": quantity,
                "specialInstructions": (raw.get("specialInstructions") or "")[
                    :MAX_INSTRUCTIONS_LENGTH
                ]
                or None,
            }
        )

    total = total.quantize(CENTS, rounding=ROUND_HALF_UP)
    if total > MAX_ORDER_TOTAL:
        raise ValidationError(f"Order total cannot exceed {MAX_ORDER_TOTAL}")
    return normalized, total


def allocate_order_number(now: datetime | None = None) -> str:
    """
    Reserve the next ``SKN-YYYYMMDD-NNN`` number.

    One counter per business day, shared by every venue, so a number alone
    identifies an order. The counter is bumped with a single UPDATE; the first
    order of the day inserts the row and retries if another request won.
    """
    now = now or utcnow()
    scope = now.strftime("%Y%m%d")

    for attempt in range(_SEQUENCE_RETRIES):
        try:
            with get_session() as session:
                result = session.execute(
                    update(OrderSequence)
                    .where(OrderSequence.scope == scope)
                    .values(value=OrderSequence.value + 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    session.execute(insert(OrderSequence).values(scope=scope, value=1))
                value = session.execute(
                    select(OrderSequence.value).where(OrderSequence.scope == scope)
                ).scalar_one()
        except IntegrityError:
            logger.debug("Order sequence row race for %s, retry %s", scope, attempt + 1)
            continue
        return f"{ORDER_NUMBER_PREFIX}-{scope}-{value:03d}"

    raise PersistenceError("Could not allocate an order number, please retry")


def create_order(
    venue_id: str,
    table_number: str,
    items: list[Any],
    customer_name: str | None = None,
    special_instructions: str | None = None,
    now: datetime | None = None,
) -> Order:
    """
    Place a new order for a venue table.

    Any client-supplied total is ignored; ``total_amount`` is derived from the
    item prices and quantities.
    """
    venue_id = (venue_id or "").strip()
    table_number = str(table_number or "").strip()
    if not venue_id:
        raise ValidationError("venueId is required")
    if not table_number:
        raise ValidationError("tableNumber is required")

    normalized_items, total = _normalize_items(items)
    now = now or utcnow()
    order_number = allocate_order_number(now)

    with get_session() as session:
        order = Order(
            venue_id=venue_id,
            table_number=table_number,
            order_number=order_number,
            items=normalized_items,
            total_amount=total,
            customer_name=(customer_name or "").strip() or DEFAULT_CUSTOMER_NAME,
            special_instructions=(special_instructions or "").strip()[:MAX_INSTRUCTIONS_LENGTH]
            or None,
            status=OrderStatus.NEW.value,
            payment_status=PaymentStatus.UNPAID.value,
            created_at=now,
            updated_at=now,
        )
        session.add(order)

    logger.info(
        "Order created: %s venue=%s table=%s total=%s",
        order_number,
        venue_id,
        table_number,
        total,
    )
    return order


def ensure_staff_of_venue(actor: dict[str, Any] | None, venue_id: str) -> None:
    """Raise AuthorizationError unless ``actor`` is staff of ``venue_id``."""
    if not actor or actor.get("role") not in STAFF_ROLES:
        raise AuthorizationError("Staff access required")
    if actor.get("venueId") != venue_id:
        raise AuthorizationError("Access denied to this venue")


def _deny_cross_venue(actor: dict[str, Any], order: Order, ip: str | None) -> None:
    logger.warning(
        "Cross-venue access denied: user=%s venue=%s order=%s",
        actor.get("uid"),
        actor.get("venueId"),
        order.id,
    )
    audit_log(
        AuditAction.CROSS_VENUE_DENIED,
        user_id=actor.get("uid"),
        details={"orderId": order.id, "orderVenueId": order.venue_id},
        ip=ip,
    )


def update_status(
    order_id: str,
    new_status: str,
    actor: dict[str, Any],
    ip: str | None = None,
    now: datetime | None = None,
) -> Order:
    """
    Move an order to ``new_status`` on behalf of a staff member.

    The write is guarded on the status that was read; if another request
    changed it in between, the read and the decision are redone.
    """
    target = parse_status(new_status)

    for attempt in range(_TRANSITION_RETRIES):
        denied: Order | None = None
        changed = False
        with get_session() as session:
            order = session.get(Order, order_id)
            if order is None:
                raise NotFoundError("Order not found")
            try:
                ensure_staff_of_venue(actor, order.venue_id)
            except AuthorizationError:
                denied = order
            else:
                plan = order_state_machine.plan(order.status, target)
                if not plan.is_noop:
                    stamp = now or utcnow()
                    values: dict[str, Any] = {"status": plan.target.value, "updated_at": stamp}
                    if plan.timestamp_field:
                        column = getattr(Order, plan.timestamp_field)
                        values[plan.timestamp_field] = func.coalesce(column, stamp)
                    result = session.execute(
                        update(Order)
                        .where(Order.id == order_id, Order.status == plan.current.value)
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        logger.info(
                            "Status conflict on order %s, retry %s", order_id, attempt + 1
                        )
                        continue
                    order = session.execute(
                        select(Order)
                        .where(Order.id == order_id)
                        .execution_options(populate_existing=True)
                    ).scalar_one()
                    changed = True

        if denied is not None:
            _deny_cross_venue(actor, denied, ip)
            raise AuthorizationError("Access denied to this venue")

        if changed:
            logger.info(
                "Order %s moved %s -> %s by %s",
                order.order_number,
                plan.current.value,
                plan.target.value,
                actor.get("uid"),
            )
            audit_log(
                AuditAction.ORDER_STATUS_CHANGED,
                user_id=actor.get("uid"),
                details={
                    "orderId": order.id,
                    "orderNumber": order.order_number,
                    "from": plan.current.value,
                    "to": plan.target.value,
                },
                ip=ip,
            )
        return order

    raise PersistenceError("Order was modified concurrently, please retry")


def get_order(order_id: str, actor: dict[str, Any], ip: str | None = None) -> Order:
    with get_session() as session:
        order = session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    try:
        ensure_staff_of_venue(actor, order.venue_id)
    except AuthorizationError:
        _deny_cross_venue(actor, order, ip)
        raise
    return order


def track_order(order_number: str) -> Order:
    """
    Public lookup by order number. Read-only; callers poll it.
    """
    normalized = (order_number or "").strip().upper()
    if not normalized:
        raise NotFoundError("Order not found")
    with get_session() as session:
        order = session.execute(
            select(Order).where(Order.order_number == normalized)
        ).scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def list_orders(
    venue_id: str,
    status_filter: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
) -> list[Order]:
    """
    Newest-first orders of one venue for the staff dashboard.

    ``status_filter`` of None or ``"all"`` returns every status; ``limit`` is
    clamped to 1..MAX_PAGE_SIZE.
    """
    limit = min(max(1, int(limit)), MAX_PAGE_SIZE)

    stmt = select(Order).where(Order.venue_id == venue_id)
    if status_filter and status_filter.strip().lower() != "all":
        value = status_filter.strip().lower()
        if value not in OrderStatus.all_values():
            raise ValidationError(
                f"Invalid status filter. Must be one of: all, {', '.join(OrderStatus.all_values())}"
            )
        stmt = stmt.where(Order.status == value)

    stmt = stmt.order_by(Order.created_at.desc(), Order.order_number.desc()).limit(limit)

    with get_session() as session:
        orders = list(session.execute(stmt).scalars().all())

    logger.debug("Listed %s orders for venue %s", len(orders), venue_id)
    return orders
