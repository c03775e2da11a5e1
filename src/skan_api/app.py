"""
Factory for the Skan API service (REST).

Serves the staff and customer endpoints under /v1. Staff authenticate with
JWT bearer tokens; there are no server-side sessions.
"""

from __future__ import annotations

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from skan_api.routes.api import api_bp
from skan_shared.audit_middleware import init_audit_middleware
from skan_shared.config import AppConfig, load_config, validate_required_env_vars
from skan_shared.db import init_db, init_engine
from skan_shared.error_handlers import register_error_handlers
from skan_shared.jwt_middleware import init_jwt_middleware
from skan_shared.logging_config import configure_logging
from skan_shared.models import Base
from skan_shared.security_middleware import (
    configure_security_headers,
    get_rate_limiter,
    sanitize_request_data,
)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def create_app(config: AppConfig | None = None) -> Flask:
    config = config or load_config("skan-api")

    # Validate all required environment variables (fail-fast)
    if not (config.debug_mode or config.testing):
        validate_required_env_vars()

    app = Flask(__name__)
    configure_logging(config.app_name, config.log_level)
    app.config.update(config.flask_settings())

    # ProxyFix: trust X-Forwarded-* only from the configured number of proxies,
    # so request.remote_addr is the address the rate limiter keys on.
    if config.num_proxies > 0:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=config.num_proxies,
            x_proto=config.num_proxies,
            x_host=config.num_proxies,
            x_port=config.num_proxies,
        )

    # Database
    init_engine(config)
    init_db(Base.metadata)

    get_rate_limiter().configure(config.rate_limits)

    # Request pipeline: sanitize, then load the JWT user. Rate limits and
    # role checks are route decorators.
    app.before_request(sanitize_request_data)
    init_jwt_middleware(app)
    init_audit_middleware(app)
    configure_security_headers(app)

    app.register_blueprint(api_bp, url_prefix="/v1")

    register_error_handlers(app)

    allowed_origins = config.cors_allowed_origins or DEFAULT_CORS_ORIGINS
    CORS(app, resources={r"/v1/*": {"origins": allowed_origins}})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "service": config.app_name}), 200

    app.logger.info("Skan API ready")
    return app
