"""
Environment configuration loading and startup validation.
"""

import pytest

from skan_shared.config import load_config, validate_required_env_vars


def test_defaults(monkeypatch):
    for name in ("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", "LOCKOUT_MAX_ATTEMPTS", "RATE_LIMIT_AUTH_MAX"):
        monkeypatch.delenv(name, raising=False)
    config = load_config("skan-api")
    assert config.jwt_access_token_expires_minutes == 15
    assert config.jwt_refresh_token_expires_days == 7
    assert config.lockout_max_attempts == 5
    assert config.lockout_duration_minutes == 30
    assert config.rate_limits["auth"] == (10, 60)
    assert config.rate_limits["staff"] == (120, 60)


def test_database_url_wins(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///elsewhere.db")
    assert load_config("skan-api").sqlalchemy_uri == "sqlite:///elsewhere.db"


def test_postgres_uri_assembled(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("POSTGRES_HOST", "db.internal")
    monkeypatch.setenv("POSTGRES_USER", "svc")
    monkeypatch.setenv("POSTGRES_PASSWORD", "pw")
    monkeypatch.setenv("POSTGRES_DB", "skan")
    uri = load_config("skan-api").sqlalchemy_uri
    assert uri.startswith("postgresql+psycopg2://svc:pw@db.internal:5432/skan")


def test_rate_limit_overrides(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_TRACKING_MAX", "5")
    monkeypatch.setenv("RATE_LIMIT_TRACKING_WINDOW", "30")
    assert load_config("skan-api").rate_limits["tracking"] == (5, 30)


def test_cors_origins_parsed(monkeypatch):
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.example, https://b.example,")
    assert load_config("skan-api").cors_allowed_origins == ["https://a.example", "https://b.example"]


def test_placeholder_secret_rejected(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "super-secret-change-me")
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        validate_required_env_vars()


def test_out_of_range_lifetime_rejected(monkeypatch):
    monkeypatch.setenv("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", "600")
    with pytest.raises(RuntimeError, match="JWT_ACCESS_TOKEN_EXPIRES_MINUTES"):
        validate_required_env_vars()


def test_valid_environment_passes(monkeypatch):
    monkeypatch.delenv("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", raising=False)
    validate_required_env_vars()
