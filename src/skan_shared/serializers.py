"""
Serializers for consistent API responses.
"""

from decimal import Decimal
from typing import Any

from .constants import ESTIMATED_TIMES, OrderStatus
from .datetime_utils import to_iso
from .models import Order, User


def _safe_float(value) -> float:
    if value is None:
        return 0.0
    if isinstance(value, Decimal):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _serialize_items(items: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [
        {
            "id": item.get("id"),
            "name": item.get("name"),
            "nameAlbanian": item.get("nameAlbanian"),
            "price": _safe_float(item.get("price")),
            "quantity": item.get("quantity"),
            "specialInstructions": item.get("specialInstructions"),
        }
        for item in (items or [])
    ]


def serialize_user_public(user: User, fallback_name: str | None = None) -> dict[str, Any]:
    """
    Public projection of a staff user; never includes hash or salt.

    Accounts provisioned without a name, such as the demo manager, show
    ``fallback_name`` instead.
    """
    return {
        "id": user.id,
        "email": user.email,
        "fullName": user.full_name or fallback_name or "",
        "role": user.role,
        "venueId": user.venue_id,
    }


def serialize_order(order: Order) -> dict[str, Any]:
    """Full staff view of an order."""
    return {
        "id": order.id,
        "venueId": order.venue_id,
        "tableNumber": order.table_number,
        "orderNumber": order.order_number,
        "items": _serialize_items(order.items),
        "totalAmount": _safe_float(order.total_amount),
        "customerName": order.customer_name,
        "specialInstructions": order.special_instructions,
        "status": order.status,
        "paymentMethod": order.payment_method,
        "paymentStatus": order.payment_status,
        "createdAt": to_iso(order.created_at),
        "updatedAt": to_iso(order.updated_at),
        "preparedAt": to_iso(order.prepared_at),
        "readyAt": to_iso(order.ready_at),
        "servedAt": to_iso(order.served_at),
    }


def serialize_order_created(order: Order) -> dict[str, Any]:
    return {
        "orderId": order.id,
        "orderNumber": order.order_number,
        "totalAmount": _safe_float(order.total_amount),
        "status": order.status,
    }


def serialize_order_tracking(order: Order) -> dict[str, Any]:
    """
    Customer-facing projection used by the public tracking page.

    Venue, table, customer and payment fields are deliberately absent.
    """
    try:
        estimated = ESTIMATED_TIMES[OrderStatus(order.status)]
    except ValueError:
        estimated = None
    return {
        "orderNumber": order.order_number,
        "status": order.status,
        "items": [
            {
                "name": item.get("name"),
                "nameAlbanian": item.get("nameAlbanian"),
                "price": _safe_float(item.get("price")),
                "quantity": item.get("quantity"),
            }
            for item in (order.items or [])
        ],
        "totalAmount": _safe_float(order.total_amount),
        "createdAt": to_iso(order.created_at),
        "preparedAt": to_iso(order.prepared_at),
        "readyAt": to_iso(order.ready_at),
        "servedAt": to_iso(order.served_at),
        "estimatedTime": estimated,
    }


def error_response(
    error: str, code: str | None = None, details: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Create a standardized error response."""
    response = {"status": "error", "data": None, "error": error}
    if code:
        response["code"] = code
    if details:
        response["details"] = details
    return response
