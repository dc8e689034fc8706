# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import pytest
from fastapi.testclient import TestClient
from typing import Generator

from main import create_app
from core.change_feed import ChangeFeed
from dependencies.auth import CurrentUser, get_current_user
from dependencies.database import get_db_client, get_change_feed
from models.enums import UserRole
from tests.fakes import FakeSupabase


BUILDING_ID = "11111111-1111-1111-1111-111111111111"
OTHER_BUILDING_ID = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def fake_db() -> FakeSupabase:
    """In-memory Supabase with one building already provisioned."""
    db = FakeSupabase()
    db.seed(
        "buildings",
        id=BUILDING_ID,
        name="Skyline Towers",
        address="1 Ring Road",
        resident_code="RES-1234",
        admin_code="ADM-1234",
        security_code="SEC-1234",
    )
    return db


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed(buffer_size=16)


@pytest.fixture(scope="function")
def app(fake_db, feed):
    """Create a test FastAPI application wired to the in-memory database."""
    application = create_app()
    application.dependency_overrides[get_db_client] = lambda: fake_db
    application.dependency_overrides[get_change_feed] = lambda: feed
    yield application
    application.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(app):
    """Authenticate every following request as ``user``."""
    def _login(user: CurrentUser) -> CurrentUser:
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login


# -----------------------------------------------------
# Users
# -----------------------------------------------------
@pytest.fixture
def resident_user(fake_db):
    fake_db.seed(
        "profiles",
        id="resident-101",
        role=UserRole.RESIDENT.value,
        building_id=BUILDING_ID,
        full_name="Asha Rao",
        wing="A",
        flat_number="101",
        phone_number="9000000101",
        is_verified=True,
    )
    return CurrentUser(
        id="resident-101",
        role=UserRole.RESIDENT,
        building_id=BUILDING_ID,
        full_name="Asha Rao",
        wing="A",
        flat_number="101",
        phone_number="9000000101",
        is_verified=True,
    )


@pytest.fixture
def neighbour_user(fake_db):
    fake_db.seed(
        "profiles",
        id="resident-202",
        role=UserRole.RESIDENT.value,
        building_id=BUILDING_ID,
        full_name="Vikram Shah",
        wing="B",
        flat_number="202",
        phone_number="9000000202",
        is_verified=True,
    )
    return CurrentUser(
        id="resident-202",
        role=UserRole.RESIDENT,
        building_id=BUILDING_ID,
        full_name="Vikram Shah",
        wing="B",
        flat_number="202",
        phone_number="9000000202",
        is_verified=True,
    )


@pytest.fixture
def other_wing_user(fake_db):
    """Flat 101 again, but in wing B."""
    fake_db.seed(
        "profiles",
        id="resident-b101",
        role=UserRole.RESIDENT.value,
        building_id=BUILDING_ID,
        full_name="Meera Iyer",
        wing="B",
        flat_number="101",
        phone_number="9000001101",
        is_verified=True,
        telegram_chat_id="5550202",
    )
    return CurrentUser(
        id="resident-b101",
        role=UserRole.RESIDENT,
        building_id=BUILDING_ID,
        full_name="Meera Iyer",
        wing="B",
        flat_number="101",
        phone_number="9000001101",
        is_verified=True,
    )


@pytest.fixture
def unverified_user(fake_db):
    fake_db.seed(
        "profiles",
        id="resident-303",
        role=UserRole.RESIDENT.value,
        building_id=BUILDING_ID,
        full_name="New Tenant",
        flat_number="303",
        phone_number="9000000303",
        is_verified=False,
    )
    return CurrentUser(
        id="resident-303",
        role=UserRole.RESIDENT,
        building_id=BUILDING_ID,
        full_name="New Tenant",
        flat_number="303",
        is_verified=False,
    )


@pytest.fixture
def security_user():
    return CurrentUser(
        id="guard-1",
        role=UserRole.SECURITY,
        building_id=BUILDING_ID,
        full_name="Main Gate",
        is_verified=True,
    )


@pytest.fixture
def admin_user():
    return CurrentUser(
        id="admin-1",
        role=UserRole.BUILDING_ADMIN,
        building_id=BUILDING_ID,
        full_name="Society Office",
        is_verified=True,
    )


@pytest.fixture
def super_admin_user():
    return CurrentUser(id="root-1", role=UserRole.SUPER_ADMIN, is_verified=True)


# -----------------------------------------------------
# Process-wide state
# -----------------------------------------------------
@pytest.fixture(autouse=True)
def reset_cache():
    """Reset cache before each test."""
    from core.cache import cache_clear
    cache_clear()
    yield
    cache_clear()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    from core.rate_limiter import reset_rate_limits as reset
    reset()
    yield
    reset()
