# routers/bookings.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from supabase import Client

from dependencies.auth import get_current_user, CurrentUser
from dependencies.database import get_db_client, get_change_feed
from core.change_feed import ChangeFeed
from core.permission_helpers import requires_permission, resolve_building_id, has_permission
from services import bookings as booking_service

from models.booking import BookingCreate, BookingRead


router = APIRouter(
    prefix="/bookings",
    tags=["Bookings"],
)


# ============================================================
# PROPOSE
# ============================================================
@router.post(
    "",
    response_model=BookingRead,
    status_code=201,
    summary="Book an amenity slot",
    dependencies=[Depends(requires_permission("bookings:write"))],
)
def create_booking(
    payload: BookingCreate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Reserve ``[start_time, end_time)`` on one amenity and date.

    - 400 `InvalidRange` when end is not after start
    - 400 `OutsideOperatingHours` outside the amenity's open/close times
    - 409 `SlotOccupied` when the slot overlaps an existing booking
    """
    amenity = booking_service.get_amenity(
        client, payload.amenity_id, building_id=resolve_building_id(current_user)
    )
    return booking_service.propose_booking(
        client,
        amenity,
        payload.date,
        payload.start_time,
        payload.end_time,
        current_user,
        feed=feed,
    )


# ============================================================
# LIST
# ============================================================
@router.get(
    "",
    response_model=list[BookingRead],
    summary="List bookings",
    dependencies=[Depends(requires_permission("bookings:read"))],
)
def list_bookings(
    amenity_id: Optional[str] = Query(None),
    booking_date: Optional[date] = Query(None, alias="date"),
    mine: bool = Query(False, description="Only my own bookings"),
    building_id: str = Query(None, description="Super admin only"),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    """
    Building admins see every booking of their building. Residents see
    every booking of a given amenity and date (to find a free slot), and
    otherwise their own.
    """
    building_id = resolve_building_id(current_user, building_id)

    manager = has_permission(current_user, "bookings:manage")
    slot_view = amenity_id is not None and booking_date is not None
    profile_id = None
    if mine or not (manager or slot_view):
        profile_id = current_user.id

    return booking_service.list_bookings(
        client,
        building_id,
        profile_id=profile_id,
        amenity_id=amenity_id,
        booking_date=booking_date,
    )


# ============================================================
# CANCEL
# ============================================================
@router.delete(
    "/{booking_id}",
    summary="Cancel a booking",
    dependencies=[Depends(requires_permission("bookings:write"))],
)
def cancel_booking(
    booking_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    booking_service.cancel_booking(client, booking_id, current_user, feed=feed)
    return {"success": True, "deleted_id": booking_id}
