"""
Skan API - Modular Blueprint Structure

Each module handles one resource; ``api_bp`` is mounted under ``/v1``.
"""

from flask import Blueprint

api_bp = Blueprint("api", __name__)

from .auth import auth_bp  # noqa: E402
from .orders import orders_bp  # noqa: E402
from .tracking import tracking_bp  # noqa: E402

api_bp.register_blueprint(auth_bp)
api_bp.register_blueprint(orders_bp)
api_bp.register_blueprint(tracking_bp)

__all__ = ["api_bp"]
