"""
Auth API - JWT-based authentication endpoints for venue staff.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from skan_shared.auth import AuthService
from skan_shared.constants import EndpointClass
from skan_shared.errors import ValidationError
from skan_shared.jwt_middleware import get_current_user, jwt_required
from skan_shared.logging_config import get_logger
from skan_shared.schemas import LoginRequest, RefreshRequest
from skan_shared.security_middleware import get_client_ip, get_request_payload, rate_limit

auth_bp = Blueprint("auth", __name__)
logger = get_logger(__name__)


def _json_body() -> dict:
    payload = get_request_payload()
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


@auth_bp.post("/auth/login")
@rate_limit(EndpointClass.AUTH)
def post_login():
    """
    Authenticate a staff member and issue an access/refresh token pair.

    Body:
        {"email": str, "password": str}

    Returns:
        {"token": str, "refreshToken": str, "user": {...}}
    """
    login_data = LoginRequest.model_validate(_json_body())
    result = AuthService.from_app().login(
        login_data.email,
        login_data.password,
        ip=get_client_ip(),
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify(
        {"token": result.access_token, "refreshToken": result.refresh_token, "user": result.user}
    ), HTTPStatus.OK


@auth_bp.post("/auth/refresh")
@rate_limit(EndpointClass.AUTH)
def post_refresh():
    """Exchange a refresh token for a new access token."""
    refresh_data = RefreshRequest.model_validate(_json_body())
    token = AuthService.from_app().refresh(
        refresh_data.refresh_token,
        ip=get_client_ip(),
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify({"token": token}), HTTPStatus.OK


@auth_bp.post("/auth/logout")
@rate_limit(EndpointClass.STAFF)
@jwt_required
def post_logout():
    AuthService.from_app().logout(
        get_current_user(),
        ip=get_client_ip(),
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify({"success": True}), HTTPStatus.OK
