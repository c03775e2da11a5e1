"""
Orders API - customer order placement and the staff order dashboard.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify

from skan_shared.constants import DEFAULT_PAGE_SIZE, STAFF_ROLES, EndpointClass
from skan_shared.datetime_utils import to_iso
from skan_shared.errors import AuthorizationError, ValidationError
from skan_shared.jwt_middleware import get_current_user, role_required
from skan_shared.logging_config import get_logger
from skan_shared.schemas import CreateOrderRequest, UpdateStatusRequest
from skan_shared.security_middleware import (
    get_client_ip,
    get_request_args,
    get_request_payload,
    rate_limit,
)
from skan_shared.serializers import serialize_order, serialize_order_created
from skan_shared.services import order_service

orders_bp = Blueprint("orders", __name__)
logger = get_logger(__name__)


def _json_body() -> dict:
    payload = get_request_payload()
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


@orders_bp.post("/orders")
@rate_limit(EndpointClass.ORDER_CREATE)
def post_order():
    """
    Place an order from a table. Public: customers are not authenticated.

    Body:
        {"venueId": str, "tableNumber": str, "items": [...],
         "customerName"?: str, "specialInstructions"?: str}
    """
    data = CreateOrderRequest.model_validate(_json_body())
    order = order_service.create_order(
        venue_id=data.venue_id,
        table_number=data.table_number,
        items=[item.model_dump(by_alias=True) for item in data.items],
        customer_name=data.customer_name,
        special_instructions=data.special_instructions,
    )
    return jsonify(serialize_order_created(order)), HTTPStatus.OK


@orders_bp.put("/orders/<order_id>/status")
@rate_limit(EndpointClass.STAFF)
@role_required(STAFF_ROLES)
def put_order_status(order_id: str):
    data = UpdateStatusRequest.model_validate(_json_body())
    order = order_service.update_status(
        order_id, data.status, actor=get_current_user(), ip=get_client_ip()
    )
    return jsonify(
        {"orderId": order.id, "status": order.status, "updatedAt": to_iso(order.updated_at)}
    ), HTTPStatus.OK


@orders_bp.get("/orders")
@rate_limit(EndpointClass.STAFF)
@role_required(STAFF_ROLES)
def get_orders():
    """
    Staff dashboard listing, polled by the admin portal.

    Query:
        venueId: defaults to the caller's venue
        status: one of the order statuses, or "all"
        limit: max 100
    """
    actor = get_current_user()
    args = get_request_args()
    venue_id = args.get("venueId") or actor.get("venueId")

    try:
        order_service.ensure_staff_of_venue(actor, venue_id)
    except AuthorizationError:
        logger.warning("User %s denied listing venue %s", actor.get("uid"), venue_id)
        raise

    raw_limit = args.get("limit") or str(DEFAULT_PAGE_SIZE)
    try:
        limit = int(raw_limit)
    except ValueError:
        raise ValidationError("limit must be an integer")

    orders = order_service.list_orders(venue_id, status_filter=args.get("status"), limit=limit)
    return jsonify({"orders": [serialize_order(order) for order in orders]}), HTTPStatus.OK


@orders_bp.get("/orders/<order_id>")
@rate_limit(EndpointClass.STAFF)
@role_required(STAFF_ROLES)
def get_order(order_id: str):
    order = order_service.get_order(order_id, actor=get_current_user(), ip=get_client_ip())
    return jsonify({"order": serialize_order(order)}), HTTPStatus.OK
