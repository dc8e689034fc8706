# tests/test_auth.py

"""
Tests for authentication endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch, Mock

from models.enums import UserRole
from routers.auth import slot_credentials, slot_identifier
from tests.conftest import BUILDING_ID


def auth_response(user_id="slot-user", token="test-token"):
    response = Mock()
    response.user.id = user_id
    response.session.access_token = token
    return response


def join_payload(**overrides):
    payload = {
        "building_name": "Skyline Towers",
        "role": "RESIDENT",
        "access_code": "RES-1234",
        "full_name": "Asha Rao",
        "wing": "a",
        "flat_number": "101",
        "phone_number": "9000000101",
    }
    payload.update(overrides)
    return payload


def test_login_success(client: TestClient):
    """Test successful login."""
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_client = Mock()
        mock_session = Mock()
        mock_session.access_token = "test-token"
        mock_response = Mock()
        mock_response.session = mock_session
        mock_client.auth.sign_in_with_password.return_value = mock_response
        mock_supabase.return_value = mock_client

        response = client.post(
            "/auth/login",
            json={"email": "root@example.com", "password": "password123"}
        )

        assert response.status_code == 200
        assert response.json()["access_token"] == "test-token"


def test_login_invalid_credentials(client: TestClient):
    """Test login with invalid credentials."""
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_client = Mock()
        mock_client.auth.sign_in_with_password.side_effect = Exception("Invalid credentials")
        mock_supabase.return_value = mock_client

        response = client.post(
            "/auth/login",
            json={"email": "root@example.com", "password": "wrong"}
        )

        assert response.status_code == 401


# ============================================================
# Portal join
# ============================================================
def test_slot_identity_is_per_unit():
    a101 = slot_identifier(BUILDING_ID, UserRole.RESIDENT, "A", "101")
    b101 = slot_identifier(BUILDING_ID, UserRole.RESIDENT, "B", "101")
    gate = slot_identifier(BUILDING_ID, UserRole.SECURITY)

    assert len({a101, b101, gate}) == 3
    email, password = slot_credentials(a101, "RES-1234")
    assert email.endswith("@urbangate.internal")
    assert "RES-1234" not in password


def test_resident_join_creates_unverified_profile(client: TestClient, fake_db):
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_supabase.return_value.auth.sign_in_with_password.return_value = auth_response()

        response = client.post("/auth/join", json=join_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["access_token"] == "test-token"
    assert body["profile"]["is_verified"] is False
    assert body["profile"]["wing"] == "A"

    stored = fake_db.rows("profiles")[0]
    assert stored["id"] == "slot-user"
    assert stored["building_id"] == BUILDING_ID
    assert stored["role"] == "RESIDENT"


def test_first_join_registers_slot_identity(client: TestClient):
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        auth = mock_supabase.return_value.auth
        auth.sign_in_with_password.side_effect = [Exception("Invalid login"), auth_response()]

        response = client.post("/auth/join", json=join_payload())

    assert response.status_code == 200
    created = auth.admin.create_user.call_args.args[0]
    assert created["email_confirm"] is True


def test_security_join_is_verified(client: TestClient):
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_supabase.return_value.auth.sign_in_with_password.return_value = auth_response("gate-slot")

        response = client.post(
            "/auth/join",
            json={
                "building_name": "skyline towers",
                "role": "SECURITY",
                "access_code": "SEC-1234",
                "full_name": "Main Gate",
            },
        )

    assert response.status_code == 200
    assert response.json()["profile"]["is_verified"] is True
    assert response.json()["profile"]["flat_number"] is None


@pytest.mark.parametrize(
    "overrides, status",
    [
        ({"access_code": "WRONG"}, 401),
        ({"access_code": "ADM-1234"}, 401),
        ({"building_name": "Nowhere Heights"}, 404),
        ({"phone_number": None}, 400),
        ({"role": "SUPER_ADMIN"}, 403),
    ],
)
def test_join_rejections(client: TestClient, overrides, status):
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_supabase.return_value.auth.sign_in_with_password.return_value = auth_response()

        response = client.post("/auth/join", json=join_payload(**overrides))

    assert response.status_code == status


def test_unit_is_locked_to_first_phone(client: TestClient, fake_db):
    fake_db.seed(
        "profiles",
        id="slot-user",
        role="RESIDENT",
        building_id=BUILDING_ID,
        flat_number="101",
        phone_number="9000000101",
        is_verified=True,
    )
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_supabase.return_value.auth.sign_in_with_password.return_value = auth_response()

        refused = client.post("/auth/join", json=join_payload(phone_number="9111111111"))
        accepted = client.post("/auth/join", json=join_payload())

    assert refused.status_code == 403
    assert accepted.status_code == 200
    assert accepted.json()["profile"]["is_verified"] is True


def test_me_returns_current_profile(client: TestClient, login, resident_user):
    login(resident_user)
    response = client.get("/auth/me")
    assert response.status_code == 200
    assert response.json()["flat_number"] == "101"
