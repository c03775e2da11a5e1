"""
Pytest fixtures for the skan API tests.

Provides the application on a temporary SQLite file, a per-test table wipe,
staff users for two venues, a controllable clock and auth helpers.
"""

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="skan-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{Path(_TMP_DIR) / 'skan-test.db'}"
os.environ["TESTING"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-entropy-0123456789"
os.environ["JWT_ISSUER"] = "skan-api"
os.environ["JWT_AUDIENCE"] = "skan-clients"
os.environ["LOG_LEVEL"] = "WARNING"

from skan_api.app import create_app  # noqa: E402
from skan_shared.config import load_config  # noqa: E402
from skan_shared.constants import Roles  # noqa: E402
from skan_shared.datetime_utils import utcnow  # noqa: E402
from skan_shared.db import get_engine, get_session  # noqa: E402
from skan_shared.models import Base, User  # noqa: E402
from skan_shared.security import hash_password  # noqa: E402
from skan_shared.security_middleware import get_rate_limiter  # noqa: E402

PASSWORD = "Correct-Horse-42"
VENUE_A = "venue-a"
VENUE_B = "venue-b"

_HASH_CACHE: dict[str, tuple[str, str]] = {}


class FakeClock:
    """Callable clock returning naive UTC datetimes that tests move by hand."""

    def __init__(self, start: datetime | None = None):
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session")
def app():
    """Create application for testing."""
    app = create_app(load_config("skan-api-test"))
    yield app


@pytest.fixture(scope="function")
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope="function", autouse=True)
def clean_state(app):
    """Clear all data but keep schema; reset rate-limit windows."""
    with get_engine().begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture
def clock():
    return FakeClock()


def create_user(
    email: str,
    password: str = PASSWORD,
    venue_id: str = VENUE_A,
    role: str = Roles.MANAGER.value,
    is_active: bool = True,
    full_name: str = "Test Manager",
) -> User:
    """Insert a staff user; scrypt hashes are cached per password."""
    if password not in _HASH_CACHE:
        _HASH_CACHE[password] = hash_password(password)
    password_hash, salt = _HASH_CACHE[password]
    with get_session() as session:
        user = User(
            email=email.strip().lower(),
            password_hash=password_hash,
            password_salt=salt,
            full_name=full_name,
            role=role,
            venue_id=venue_id,
            is_active=is_active,
        )
        session.add(user)
    return user


@pytest.fixture
def manager_a():
    return create_user("manager@venue-a.com", venue_id=VENUE_A)


@pytest.fixture
def manager_b():
    return create_user("manager@venue-b.com", venue_id=VENUE_B, full_name="Other Manager")


def login(client, email: str, password: str = PASSWORD):
    return client.post("/v1/auth/login", json={"email": email, "password": password})


def get_auth_token(client, email: str, password: str = PASSWORD) -> str | None:
    """Helper to get an access token for a user."""
    response = login(client, email, password)
    if response.status_code == 200:
        return response.get_json().get("token")
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_a(client, manager_a):
    return auth_headers(get_auth_token(client, manager_a.email))


@pytest.fixture
def headers_b(client, manager_b):
    return auth_headers(get_auth_token(client, manager_b.email))


def order_payload(venue_id: str = VENUE_A, table_number: str = "T1", **overrides) -> dict:
    payload = {
        "venueId": venue_id,
        "tableNumber": table_number,
        "items": [
            {"id": "espresso", "name": "Espresso", "price": 3.5, "quantity": 2},
            {"id": "burger", "name": "Burger", "nameAlbanian": "Hamburger", "price": 8, "quantity": 1},
        ],
    }
    payload.update(overrides)
    return payload
