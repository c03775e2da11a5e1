"""
Rate limiter, input sanitizer and response header tests.
"""

import dataclasses

import pytest
from sqlalchemy import select

from conftest import login, order_payload
from skan_api.app import create_app
from skan_shared.config import load_config
from skan_shared.constants import MAX_TEXT_LENGTH, AuditAction, EndpointClass
from skan_shared.db import get_session
from skan_shared.models import AuditLog
from skan_shared.security_middleware import RateLimiter, sanitize_input


class FakeMonotonic:
    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


# =============================================================================
# RATE LIMITER
# =============================================================================


class TestRateLimiter:
    def test_window_limits_and_recovers(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(limits={"auth": (2, 60)}, clock=clock)
        assert limiter.allow("1.2.3.4", EndpointClass.AUTH)
        assert limiter.allow("1.2.3.4", EndpointClass.AUTH)
        assert not limiter.allow("1.2.3.4", EndpointClass.AUTH)

        clock.value += 61
        assert limiter.allow("1.2.3.4", EndpointClass.AUTH)

    def test_clients_and_classes_are_independent(self):
        limiter = RateLimiter(limits={"auth": (1, 60), "tracking": (1, 60)}, clock=FakeMonotonic())
        assert limiter.allow("1.1.1.1", EndpointClass.AUTH)
        assert limiter.allow("2.2.2.2", EndpointClass.AUTH)
        assert limiter.allow("1.1.1.1", EndpointClass.TRACKING)
        assert not limiter.allow("1.1.1.1", EndpointClass.AUTH)

    def test_retry_after_counts_down(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(limits={"auth": (1, 60)}, clock=clock)
        limiter.check("ip", EndpointClass.AUTH)
        clock.value += 20
        allowed, remaining, retry_after = limiter.check("ip", EndpointClass.AUTH)
        assert (allowed, remaining, retry_after) == (False, 0, 40)

    def test_reset_clears_windows(self):
        limiter = RateLimiter(limits={"auth": (1, 60)}, clock=FakeMonotonic())
        limiter.allow("ip", EndpointClass.AUTH)
        limiter.reset()
        assert limiter.allow("ip", EndpointClass.AUTH)

    def test_clean_old_entries_drops_idle_clients(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(clock=clock)
        limiter.allow("idle", EndpointClass.TRACKING)
        clock.value += 3700
        limiter.allow("active", EndpointClass.TRACKING)
        limiter.clean_old_entries()
        assert list(limiter.requests) == ["active:tracking"]

    def test_staff_polling_is_not_throttled(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(clock=clock)
        # A dashboard polling every 30 seconds for an hour.
        for _ in range(120):
            assert limiter.allow("venue-dashboard", EndpointClass.STAFF)
            clock.value += 30

    def test_auth_endpoint_returns_429_and_audits(self, client):
        for i in range(10):
            resp = login(client, f"user{i}@venue-a.com", "whatever")
            assert resp.status_code == 401

        resp = login(client, "user-extra@venue-a.com", "whatever")
        assert resp.status_code == 429
        assert resp.get_json()["code"] == "RATE_LIMITED"
        assert int(resp.headers["Retry-After"]) >= 1
        assert resp.headers["X-RateLimit-Limit"] == "10"
        assert resp.headers["X-RateLimit-Remaining"] == "0"

        with get_session() as session:
            actions = session.execute(select(AuditLog.action)).scalars().all()
        assert AuditAction.RATE_LIMIT_EXCEEDED.value in actions

    def test_successful_responses_carry_limit_headers(self, client):
        resp = client.post("/v1/orders", json=order_payload())
        assert resp.headers["X-RateLimit-Limit"] == "10"
        assert resp.headers["X-RateLimit-Remaining"] == "9"

    def test_limits_are_per_client_address(self, client):
        first = {"REMOTE_ADDR": "10.0.0.1"}
        for _ in range(10):
            client.post("/v1/orders", json=order_payload(), environ_base=first)
        blocked = client.post("/v1/orders", json=order_payload(), environ_base=first)
        other = client.post(
            "/v1/orders", json=order_payload(), environ_base={"REMOTE_ADDR": "10.0.0.2"}
        )
        assert blocked.status_code == 429
        assert other.status_code == 200

    def test_forwarded_header_does_not_reset_window(self, client):
        for i in range(10):
            resp = login(client, f"user{i}@venue-a.com", "whatever")
            assert resp.status_code == 401

        resp = client.post(
            "/v1/auth/login",
            json={"email": "user-extra@venue-a.com", "password": "whatever"},
            headers={"X-Forwarded-For": "198.51.100.99", "X-Real-IP": "198.51.100.98"},
        )
        assert resp.status_code == 429

    def test_trusted_proxy_hop_is_the_client_key(self):
        behind_proxy = create_app(dataclasses.replace(load_config("skan-api-test"), num_proxies=1))
        proxied = behind_proxy.test_client()

        def attempt(forged: str, client_ip: str):
            return proxied.post(
                "/v1/auth/login",
                json={"email": "someone@venue-a.com", "password": "whatever"},
                headers={"X-Forwarded-For": f"{forged}, {client_ip}"},
            )

        for i in range(10):
            assert attempt(f"192.0.2.{i}", "203.0.113.7").status_code == 401
        assert attempt("192.0.2.200", "203.0.113.7").status_code == 429
        assert attempt("192.0.2.201", "203.0.113.8").status_code == 401

    def test_idle_clients_are_evicted(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(limits={"tracking": (60, 60)}, clock=clock, sweep_every=5)
        for i in range(4):
            limiter.allow(f"10.0.0.{i}", EndpointClass.TRACKING)
        assert len(limiter.requests) == 4

        clock.value += 61
        limiter.allow("10.0.1.1", EndpointClass.TRACKING)
        assert list(limiter.requests) == ["10.0.1.1:tracking"]

    def test_active_clients_survive_eviction(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(limits={"auth": (2, 60)}, clock=clock, sweep_every=2)
        limiter.allow("10.0.0.1", EndpointClass.AUTH)
        limiter.allow("10.0.0.1", EndpointClass.AUTH)
        clock.value += 10
        assert not limiter.allow("10.0.0.1", EndpointClass.AUTH)
        assert not limiter.allow("10.0.0.1", EndpointClass.AUTH)


# =============================================================================
# SANITIZER
# =============================================================================


class TestSanitizeInput:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("  hello  ", "hello"),
            ("<script>alert(1)</script>", "scriptalert(1)/script"),
            ("tab\tand\nnewline", "tab\tand\nnewline"),
            ("nul\x00bell\x07", "nulbell"),
        ],
    )
    def test_strings(self, raw, expected):
        assert sanitize_input(raw) == expected

    def test_long_strings_truncated(self):
        assert len(sanitize_input("a" * (MAX_TEXT_LENGTH + 500))) == MAX_TEXT_LENGTH

    def test_nested_structures(self):
        raw = {"items": [{"name": " <b>Tea</b> ", "price": 2.5, "quantity": 1}], "flag": True}
        assert sanitize_input(raw) == {
            "items": [{"name": "bTea/b", "price": 2.5, "quantity": 1}],
            "flag": True,
        }

    def test_credentials_untouched(self):
        raw = {"password": " p<a>ss ", "refreshToken": "abc<def>"}
        assert sanitize_input(raw) == raw

    def test_request_bodies_are_sanitized(self, client, headers_a):
        created = client.post(
            "/v1/orders",
            json=order_payload(customerName="<img src=x onerror=alert(1)> Ana "),
        ).get_json()
        order = client.get(f"/v1/orders/{created['orderId']}", headers=headers_a).get_json()["order"]
        assert order["customerName"] == "img src=x onerror=alert(1) Ana"


# =============================================================================
# HEADERS
# =============================================================================


class TestResponseHeaders:
    def test_security_headers_present(self, client):
        resp = client.get("/v1/track/SKN-20240101-001")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["Cache-Control"] == "no-store"

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"
