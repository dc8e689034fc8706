# tests/test_bookings_api.py

"""
Tests for amenity and booking endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from tests.conftest import BUILDING_ID


@pytest.fixture
def pool_id(client: TestClient, login, admin_user):
    login(admin_user)
    response = client.post(
        "/amenities",
        json={"name": "Pool", "capacity": 20, "open_time": "09:00", "close_time": "22:00"},
    )
    assert response.status_code == 201
    return response.json()["id"]


def book(client, amenity_id, start, end, day="2024-06-01"):
    return client.post(
        "/bookings",
        json={"amenity_id": amenity_id, "date": day, "start_time": start, "end_time": end},
    )


def test_admin_creates_amenity_with_hours(client: TestClient, login, admin_user, fake_db):
    login(admin_user)
    response = client.post(
        "/amenities",
        json={"name": " Gym ", "open_time": "06:00", "close_time": "23:00"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Gym"
    assert body["open_time"] == "06:00"
    assert fake_db.rows("amenities")[0]["building_id"] == BUILDING_ID


def test_amenity_hours_must_be_ordered(client: TestClient, login, admin_user):
    login(admin_user)
    response = client.post(
        "/amenities",
        json={"name": "Hall", "open_time": "22:00", "close_time": "09:00"},
    )
    assert response.status_code == 422


def test_resident_cannot_create_amenity(client: TestClient, login, resident_user):
    login(resident_user)
    response = client.post("/amenities", json={"name": "Sauna"})
    assert response.status_code == 403


def test_pool_scenarios(client: TestClient, login, pool_id, resident_user, neighbour_user):
    login(neighbour_user)
    assert book(client, pool_id, "10:00", "11:00").status_code == 201

    login(resident_user)
    clash = book(client, pool_id, "10:30", "11:30")
    assert clash.status_code == 409
    assert clash.json()["error"] == "SlotOccupied"

    adjacent = book(client, pool_id, "11:00", "12:00")
    assert adjacent.status_code == 201
    assert adjacent.json()["start_time"] == "11:00"

    early = book(client, pool_id, "08:00", "09:00")
    assert early.status_code == 400
    assert early.json()["error"] == "OutsideOperatingHours"

    reversed_range = book(client, pool_id, "12:00", "11:00")
    assert reversed_range.status_code == 400
    assert reversed_range.json() == {
        "detail": "End time must be after start time",
        "error": "InvalidRange",
    }


def test_amenity_of_other_building_is_not_found(client: TestClient, login, resident_user, fake_db):
    other = fake_db.seed("amenities", building_id="elsewhere", name="Roof", capacity=5)
    login(resident_user)

    response = book(client, other["id"], "10:00", "11:00")

    assert response.status_code == 404


def test_listing_scopes(client: TestClient, login, pool_id, admin_user, resident_user, neighbour_user):
    login(neighbour_user)
    book(client, pool_id, "10:00", "11:00")
    login(resident_user)
    book(client, pool_id, "12:00", "13:00")

    own = client.get("/bookings").json()
    assert [b["profile_id"] for b in own] == [resident_user.id]

    slot_view = client.get("/bookings", params={"amenity_id": pool_id, "date": "2024-06-01"}).json()
    assert len(slot_view) == 2

    login(admin_user)
    assert len(client.get("/bookings").json()) == 2


def test_only_owner_or_admin_cancels(client: TestClient, login, pool_id, admin_user, resident_user, neighbour_user):
    login(neighbour_user)
    booking_id = book(client, pool_id, "10:00", "11:00").json()["id"]

    login(resident_user)
    refused = client.delete(f"/bookings/{booking_id}")
    assert refused.status_code == 403
    assert refused.json()["error"] == "Forbidden"

    login(admin_user)
    assert client.delete(f"/bookings/{booking_id}").status_code == 200
    assert client.delete(f"/bookings/{booking_id}").status_code == 404
