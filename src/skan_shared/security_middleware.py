"""
Security middleware: input sanitization, rate limiting and response headers.
"""

import math
import re
import threading
import time
from collections import defaultdict
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, g, request

from .constants import MAX_TEXT_LENGTH, AuditAction, EndpointClass
from .errors import RateLimitedError
from .logging_config import get_logger
from .services.audit_service import audit_log

logger = get_logger(__name__)

# C0 controls and DEL, keeping tab and newline.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_ANGLE_BRACKETS = re.compile(r"[<>]")

# Secrets are compared or verified, never rendered; altering them would break
# valid credentials.
SANITIZE_EXEMPT_KEYS = frozenset({"password", "refreshToken"})

DEFAULT_RATE_LIMITS: dict[str, tuple[int, int]] = {
    EndpointClass.AUTH.value: (10, 60),
    EndpointClass.ORDER_CREATE.value: (10, 60),
    EndpointClass.STAFF.value: (120, 60),
    EndpointClass.TRACKING.value: (60, 60),
}

# Idle clients are evicted once every this many checks.
DEFAULT_SWEEP_EVERY = 500


def get_client_ip() -> str:
    """
    Client address used for rate limiting and audit entries.

    Forwarded headers are not read here. ProxyFix rewrites remote_addr from
    X-Forwarded-For only when NUM_PROXIES trusted proxies are configured, so
    a client cannot choose its own key.
    """
    return request.remote_addr or "unknown"


class RateLimiter:
    """
    In-memory sliding-window rate limiter keyed by client and endpoint class.

    Windows live in process memory only; a restart clears them.
    """

    def __init__(
        self,
        limits: dict[str, tuple[int, int]] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_every: int = DEFAULT_SWEEP_EVERY,
    ):
        self.limits: dict[str, tuple[int, int]] = dict(limits or DEFAULT_RATE_LIMITS)
        self.requests: dict[str, list[float]] = defaultdict(list)
        self._clock = clock
        self._lock = threading.Lock()
        self._sweep_every = max(1, sweep_every)
        self._checks = 0

    def configure(self, limits: dict[str, tuple[int, int]]) -> None:
        with self._lock:
            self.limits.update(limits)

    def limit_for(self, endpoint_class: str) -> tuple[int, int]:
        key = endpoint_class.value if isinstance(endpoint_class, EndpointClass) else endpoint_class
        return self.limits.get(key, DEFAULT_RATE_LIMITS[EndpointClass.STAFF.value])

    def check(self, client_key: str, endpoint_class: str) -> tuple[bool, int, int]:
        """
        Record a request and decide whether it fits in the current window.

        Returns:
            Tuple of (is_allowed, remaining_requests, retry_after_seconds)
        """
        max_requests, window_seconds = self.limit_for(endpoint_class)
        class_key = endpoint_class.value if isinstance(endpoint_class, EndpointClass) else endpoint_class
        key = f"{client_key}:{class_key}"

        with self._lock:
            now = self._clock()
            self._checks += 1
            if self._checks % self._sweep_every == 0:
                self._evict_idle(now)

            cutoff = now - window_seconds
            hits = [t for t in self.requests[key] if t > cutoff]
            self.requests[key] = hits

            if len(hits) >= max_requests:
                retry_after = max(1, math.ceil(hits[0] + window_seconds - now))
                return False, 0, retry_after

            hits.append(now)
            return True, max_requests - len(hits), 0

    def _evict_idle(self, now: float) -> None:
        """Drop clients with no hit inside their class window. Caller holds the lock."""
        for key in list(self.requests.keys()):
            _, window_seconds = self.limit_for(key.rsplit(":", 1)[-1])
            hits = [t for t in self.requests[key] if t > now - window_seconds]
            if hits:
                self.requests[key] = hits
            else:
                del self.requests[key]

    def allow(self, client_key: str, endpoint_class: str) -> bool:
        allowed, _, _ = self.check(client_key, endpoint_class)
        return allowed

    def reset(self) -> None:
        with self._lock:
            self.requests.clear()

    def clean_old_entries(self, max_age_seconds: int = 3600) -> None:
        """Remove entries older than max_age to prevent memory leak."""
        with self._lock:
            cutoff = self._clock() - max_age_seconds
            for key in list(self.requests.keys()):
                self.requests[key] = [t for t in self.requests[key] if t > cutoff]
                if not self.requests[key]:
                    del self.requests[key]


_rate_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    return _rate_limiter


def rate_limit(endpoint_class: EndpointClass):
    """
    Decorator to rate limit an endpoint by client IP within its class.

    Denials are written to the audit log and raised as RateLimitedError,
    which the error handlers render as 429 with Retry-After headers.
    """

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_app.config.get("RATE_LIMIT_ENABLED", True):
                return f(*args, **kwargs)

            client_ip = get_client_ip()
            max_requests, _ = _rate_limiter.limit_for(endpoint_class)
            is_allowed, remaining, retry_after = _rate_limiter.check(client_ip, endpoint_class)

            if not is_allowed:
                logger.warning(
                    "Rate limit exceeded: ip=%s class=%s path=%s",
                    client_ip,
                    endpoint_class.value,
                    request.path,
                )
                audit_log(
                    AuditAction.RATE_LIMIT_EXCEEDED,
                    details={"endpointClass": endpoint_class.value, "path": request.path},
                    ip=client_ip,
                    user_agent=request.headers.get("User-Agent"),
                )
                raise RateLimitedError(retry_after=retry_after, limit=max_requests)

            response = current_app.make_response(f(*args, **kwargs))
            response.headers["X-RateLimit-Limit"] = str(max_requests)
            response.headers["X-RateLimit-Remaining"] = str(remaining)
            return response

        return decorated_function

    return decorator


def sanitize_input(value: Any) -> Any:
    """
    Strip unsafe content from an inbound value.

    Strings are trimmed, lose control characters and angle brackets, and are
    cut to MAX_TEXT_LENGTH. Containers are sanitized recursively; numbers,
    booleans and None pass through untouched.
    """
    if isinstance(value, str):
        cleaned = _CONTROL_CHARS.sub("", value)
        cleaned = _ANGLE_BRACKETS.sub("", cleaned).strip()
        return cleaned[:MAX_TEXT_LENGTH]
    elif isinstance(value, dict):
        return {
            k: v if k in SANITIZE_EXEMPT_KEYS else sanitize_input(v) for k, v in value.items()
        }
    elif isinstance(value, list):
        return [sanitize_input(item) for item in value]
    else:
        return value


def sanitize_request_data() -> None:
    """
    Sanitize the JSON body and query string of the current request.

    Call this in a before_request handler; views read the cleaned values via
    ``get_request_payload`` and ``get_request_args``.
    """
    payload = request.get_json(silent=True) if request.is_json else None
    g.sanitized_payload = sanitize_input(payload)
    g.sanitized_args = {key: sanitize_input(value) for key, value in request.args.items()}


def get_request_payload() -> Any:
    if "sanitized_payload" not in g:
        sanitize_request_data()
    return g.sanitized_payload


def get_request_args() -> dict[str, str]:
    if "sanitized_args" not in g:
        sanitize_request_data()
    return g.sanitized_args


def configure_security_headers(app):
    """
    Configure security headers for Flask app.

    Args:
        app: Flask application instance
    """

    @app.after_request
    def add_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Order and auth payloads change on every poll; never cache them.
        if request.path.startswith("/v1/"):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"

        return response
