"""
Centralized error handlers for Flask applications.
"""

from http import HTTPStatus

from flask import Flask, jsonify
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .errors import RateLimitedError, SkanError
from .logging_config import get_logger
from .serializers import error_response

logger = get_logger(__name__)


def _pydantic_message(e: PydanticValidationError) -> str:
    errors = e.errors()
    if not errors:
        return "Invalid request data"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_error_handlers(app: Flask) -> None:
    """
    Register centralized error handlers for the Flask app.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(RateLimitedError)
    def handle_rate_limited(e: RateLimitedError):
        response = jsonify(error_response(e.message, e.code))
        response.status_code = e.status
        response.headers["Retry-After"] = str(e.retry_after)
        response.headers["X-RateLimit-Limit"] = str(e.limit)
        response.headers["X-RateLimit-Remaining"] = "0"
        return response

    @app.errorhandler(SkanError)
    def handle_skan_error(e: SkanError):
        """Typed service failures carry their own status and code."""
        if e.status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.error("%s: %s", e.code, e.message)
        else:
            logger.warning("%s: %s", e.code, e.message)
        return jsonify(error_response(e.message, e.code)), e.status

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_validation_error(e: PydanticValidationError):
        logger.warning("Request validation failed: %s", e.error_count())
        return jsonify(
            error_response(_pydantic_message(e), "VALIDATION_ERROR")
        ), HTTPStatus.BAD_REQUEST

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e: SQLAlchemyError):
        """Store failures are reported as retryable."""
        logger.error("Database error: %s", e, exc_info=True)
        return jsonify(
            error_response("Service temporarily unavailable, please retry", "PERSISTENCE_ERROR")
        ), HTTPStatus.SERVICE_UNAVAILABLE

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        """Handle HTTP exceptions from Werkzeug."""
        logger.warning("HTTP exception %s: %s", e.code, e.description)
        code = (e.name or "error").upper().replace(" ", "_")
        return jsonify(error_response(e.description or str(e), code)), e.code

    @app.errorhandler(Exception)
    def handle_generic_exception(e: Exception):
        """Handle any unhandled exceptions."""
        logger.error("Unhandled exception: %s", e, exc_info=True)
        return jsonify(
            error_response("Internal server error", "INTERNAL_ERROR")
        ), HTTPStatus.INTERNAL_SERVER_ERROR
