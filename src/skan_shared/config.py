"""
Utilities to centralize configuration handling across the skan services.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

PLACEHOLDER_SECRETS = {
    "",
    "change-me-please",
    "super-secret-change-me",
    "your-secret-key-here",
}


@dataclass
class AppConfig:
    """Simple container for application level settings."""

    app_name: str
    # PostgreSQL database
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    db_sslmode: str
    database_url: str | None
    # App settings
    secret_key: str
    log_level: str
    debug_mode: bool
    flask_debug: bool
    testing: bool
    cors_allowed_origins: list[str]
    # Display name for the demo account; read per request, never mutated.
    demo_user_name: str
    # JWT settings
    jwt_issuer: str
    jwt_audience: str
    jwt_access_token_expires_minutes: int
    jwt_refresh_token_expires_days: int
    # Account lockout
    lockout_max_attempts: int
    lockout_duration_minutes: int
    # Rate limits: endpoint class -> (max_requests, window_seconds)
    rate_limits: dict[str, tuple[int, int]] = field(default_factory=dict)
    rate_limit_enabled: bool = True
    # Reverse proxies in front of the app whose X-Forwarded-For hop is trusted.
    num_proxies: int = 0

    @property
    def sqlalchemy_uri(self) -> str:
        """
        Build the SQLAlchemy URI.

        DATABASE_URL wins when set (SQLite for local runs and tests); otherwise a
        PostgreSQL URI using psycopg2 as the driver is assembled from POSTGRES_*.
        """
        if self.database_url:
            return self.database_url
        ssl_arg = f"?sslmode={self.db_sslmode}" if self.db_sslmode else ""
        return (
            f"postgresql+psycopg2://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}{ssl_arg}"
        )

    def flask_settings(self) -> dict:
        """Mapping copied into ``app.config`` by the application factory."""
        return {
            "SECRET_KEY": self.secret_key,
            "APP_NAME": self.app_name,
            "DEBUG_MODE": self.debug_mode,
            "DEBUG": self.flask_debug,
            "TESTING": self.testing,
            "DEMO_USER_NAME": self.demo_user_name,
            "JWT_ISSUER": self.jwt_issuer,
            "JWT_AUDIENCE": self.jwt_audience,
            "JWT_ACCESS_TOKEN_EXPIRES_MINUTES": self.jwt_access_token_expires_minutes,
            "JWT_REFRESH_TOKEN_EXPIRES_DAYS": self.jwt_refresh_token_expires_days,
            "LOCKOUT_MAX_ATTEMPTS": self.lockout_max_attempts,
            "LOCKOUT_DURATION_MINUTES": self.lockout_duration_minutes,
            "RATE_LIMITS": dict(self.rate_limits),
            "RATE_LIMIT_ENABLED": self.rate_limit_enabled,
            "NUM_PROXIES": self.num_proxies,
        }


def _read_env(name: str, default: str | None = None) -> str:
    """
    Internal helper to fetch environment variables with support for defaults.
    """
    value = os.getenv(name)
    if value is None:
        if default is None:
            raise RuntimeError(f"Missing required environment variable '{name}'")
        value = default
    return value


def read_bool(name: str, default: str = "false") -> bool:
    value = _read_env(name, default)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_origins(name: str) -> list[str]:
    raw = _read_env(name, "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _read_rate_limit(endpoint_class: str, default_max: int, default_window: int) -> tuple[int, int]:
    prefix = f"RATE_LIMIT_{endpoint_class.upper()}"
    return (
        int(_read_env(f"{prefix}_MAX", str(default_max))),
        int(_read_env(f"{prefix}_WINDOW", str(default_window))),
    )


def validate_required_env_vars(skip_in_debug: bool = False) -> None:
    """
    Validate that all required environment variables are set.

    Designed to fail fast during startup rather than encountering errors later.

    Args:
        skip_in_debug: If True, skip validation when DEBUG_MODE=true

    Raises:
        RuntimeError: If any required variable is missing or has an invalid value
    """
    if skip_in_debug and read_bool("DEBUG_MODE", "false"):
        return

    errors = []

    secret_key = os.getenv("SECRET_KEY", "")
    if secret_key in PLACEHOLDER_SECRETS:
        errors.append(
            "SECRET_KEY must be configured with a secure random value. "
            'Generate with: python3 -c "import secrets; print(secrets.token_urlsafe(32))"'
        )

    if not os.getenv("DATABASE_URL"):
        for name in ("POSTGRES_HOST", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DB"):
            if not os.getenv(name):
                errors.append(f"{name} must be configured (or set DATABASE_URL)")

    for name, low, high in (
        ("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", 1, 60),
        ("JWT_REFRESH_TOKEN_EXPIRES_DAYS", 1, 90),
        ("LOCKOUT_MAX_ATTEMPTS", 1, 100),
    ):
        raw = os.getenv(name, "")
        if not raw:
            continue
        try:
            value = int(raw)
        except ValueError:
            errors.append(f"{name} must be a valid integer, got: {raw}")
            continue
        if value < low or value > high:
            errors.append(f"{name}={value} is outside the allowed range ({low}-{high})")

    if errors:
        error_msg = "\nConfiguration errors - missing or invalid environment variables:\n"
        for error in errors:
            error_msg += f"  - {error}\n"
        raise RuntimeError(error_msg)


def load_config(app_name: str) -> AppConfig:
    """
    Produce an AppConfig instance populated from environment variables.

    Each service passes its desired `app_name` to keep logs easy to
    differentiate while still reusing the same config loader.
    """
    return AppConfig(
        app_name=app_name,
        db_host=_read_env("POSTGRES_HOST", "skan-postgres"),
        db_port=int(_read_env("POSTGRES_PORT", "5432")),
        db_user=_read_env("POSTGRES_USER", "skan"),
        db_password=_read_env("POSTGRES_PASSWORD", "skan"),
        db_name=_read_env("POSTGRES_DB", "skan"),
        db_sslmode=_read_env("POSTGRES_SSLMODE", "disable"),
        database_url=os.getenv("DATABASE_URL") or None,
        secret_key=_read_env("SECRET_KEY", "super-secret-change-me"),
        log_level=_read_env("LOG_LEVEL", "INFO"),
        debug_mode=read_bool("DEBUG_MODE", "false"),
        flask_debug=read_bool("FLASK_DEBUG", "false"),
        testing=read_bool("TESTING", "false"),
        cors_allowed_origins=_read_origins("CORS_ALLOWED_ORIGINS"),
        demo_user_name=_read_env("DEMO_USER_NAME", "Demo Manager"),
        jwt_issuer=_read_env("JWT_ISSUER", "skan-api"),
        jwt_audience=_read_env("JWT_AUDIENCE", "skan-clients"),
        jwt_access_token_expires_minutes=int(_read_env("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", "15")),
        jwt_refresh_token_expires_days=int(_read_env("JWT_REFRESH_TOKEN_EXPIRES_DAYS", "7")),
        lockout_max_attempts=int(_read_env("LOCKOUT_MAX_ATTEMPTS", "5")),
        lockout_duration_minutes=int(_read_env("LOCKOUT_DURATION_MINUTES", "30")),
        rate_limits={
            "auth": _read_rate_limit("auth", 10, 60),
            "order_create": _read_rate_limit("order_create", 10, 60),
            "staff": _read_rate_limit("staff", 120, 60),
            "tracking": _read_rate_limit("tracking", 60, 60),
        },
        rate_limit_enabled=read_bool("RATE_LIMIT_ENABLED", "true"),
        num_proxies=int(_read_env("NUM_PROXIES", "0")),
    )
