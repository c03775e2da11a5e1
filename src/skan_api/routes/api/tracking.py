"""
Tracking API - public order status page, polled by customers.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify

from skan_shared.constants import EndpointClass
from skan_shared.security_middleware import rate_limit
from skan_shared.serializers import serialize_order_tracking
from skan_shared.services import order_service

tracking_bp = Blueprint("tracking", __name__)


@tracking_bp.get("/track/<order_number>")
@rate_limit(EndpointClass.TRACKING)
def get_tracking(order_number: str):
    order = order_service.track_order(order_number)
    return jsonify(serialize_order_tracking(order)), HTTPStatus.OK
