# services/bookings.py

"""
Amenity reservations.

A booking occupies the half-open interval [start_time, end_time) on one
amenity and date. Two bookings overlap iff s1 < e2 and s2 < e1, so a
booking ending at 11:00 and one starting at 11:00 do not clash.

The overlap scan runs before the insert for a clear error message. It is
not race-free on its own, so after inserting, the slot is read again: if a
conflicting booking was stored first, the new row is removed and the
caller gets SlotOccupied. An exclusion-constraint violation raised by the
database is reported the same way.
"""

from datetime import date, datetime, time, timezone
from typing import Iterable, Optional

from supabase import Client

from core.change_feed import ChangeFeed
from core.errors import (
    NotFound,
    Forbidden,
    InvalidRange,
    OutsideOperatingHours,
    SlotOccupied,
    PersistenceError,
    is_exclusion_violation,
    is_invalid_input,
    persistence_error,
)
from core.logging_config import logger
from core.utils import format_time_of_day, parse_time_of_day, parse_timestamp
from models.enums import ChangeOperation, UserRole


TABLE = "bookings"

_LATEST = datetime.max.replace(tzinfo=timezone.utc)


# ============================================================
# Pure checks
# ============================================================
def intervals_overlap(s1: time, e1: time, s2: time, e2: time) -> bool:
    """Half-open [s1, e1) vs [s2, e2)."""
    return s1 < e2 and s2 < e1


def check_range(start: time, end: time):
    if start >= end:
        raise InvalidRange("End time must be after start time")


def check_operating_hours(amenity: dict, start: time, end: time):
    """Both ends must fall inside [open_time, close_time]."""
    open_time = parse_time_of_day(amenity.get("open_time"))
    close_time = parse_time_of_day(amenity.get("close_time"))

    # No hours configured: bookable around the clock
    if open_time is None or close_time is None:
        return

    if start < open_time or end > close_time:
        raise OutsideOperatingHours(
            f"{amenity.get('name', 'This facility')} is only open between "
            f"{format_time_of_day(open_time)} and {format_time_of_day(close_time)}"
        )


def find_conflicts(existing: Iterable[dict], start: time, end: time, exclude_id: str = None) -> list[dict]:
    conflicts = []
    for booking in existing:
        if exclude_id is not None and str(booking.get("id")) == str(exclude_id):
            continue
        other_start = parse_time_of_day(booking["start_time"])
        other_end = parse_time_of_day(booking["end_time"])
        if intervals_overlap(start, end, other_start, other_end):
            conflicts.append(booking)
    return conflicts


def _stored_order(booking: dict) -> tuple:
    created_at = parse_timestamp(booking.get("created_at")) or _LATEST
    return (created_at, str(booking.get("id")))


def _occupied_message(conflict: dict) -> str:
    start = format_time_of_day(parse_time_of_day(conflict["start_time"]))
    end = format_time_of_day(parse_time_of_day(conflict["end_time"]))
    return f"Slot occupied: already booked from {start} to {end}"


# ============================================================
# Reads
# ============================================================
def get_amenity(client: Client, amenity_id: str, building_id: str = None) -> dict:
    try:
        query = client.table("amenities").select("*").eq("id", amenity_id)
        if building_id:
            query = query.eq("building_id", building_id)
        res = query.limit(1).execute()
    except Exception as e:
        if is_invalid_input(e):
            raise NotFound("Amenity not found")
        raise persistence_error(e, "Failed to load amenity")

    if not res.data:
        raise NotFound("Amenity not found")
    return res.data[0]


def get_booking(client: Client, booking_id: str) -> dict:
    try:
        res = client.table(TABLE).select("*").eq("id", booking_id).limit(1).execute()
    except Exception as e:
        if is_invalid_input(e):
            raise NotFound("Booking not found")
        raise persistence_error(e, "Failed to load booking")

    if not res.data:
        raise NotFound("Booking not found")
    return res.data[0]


def slot_bookings(client: Client, amenity_id: str, booking_date: date) -> list[dict]:
    """Every booking on (amenity, date)."""
    try:
        res = (
            client.table(TABLE)
            .select("*")
            .eq("amenity_id", amenity_id)
            .eq("date", booking_date.isoformat())
            .execute()
        )
    except Exception as e:
        raise persistence_error(e, "Failed to load existing bookings")
    return res.data or []


def list_bookings(
    client: Client,
    building_id: str,
    profile_id: str = None,
    amenity_id: str = None,
    booking_date: Optional[date] = None,
) -> list[dict]:
    try:
        query = client.table(TABLE).select("*").eq("building_id", building_id)
        if profile_id:
            query = query.eq("profile_id", profile_id)
        if amenity_id:
            query = query.eq("amenity_id", amenity_id)
        if booking_date:
            query = query.eq("date", booking_date.isoformat())
        res = query.order("date", desc=True).order("start_time").execute()
    except Exception as e:
        raise persistence_error(e, "Failed to list bookings")
    return res.data or []


# ============================================================
# Propose / cancel
# ============================================================
def propose_booking(
    client: Client,
    amenity: dict,
    booking_date: date,
    start: time,
    end: time,
    requester,
    feed: ChangeFeed = None,
) -> dict:
    """
    Reserve an amenity slot for ``requester`` (a CurrentUser).

    Raises InvalidRange, OutsideOperatingHours or SlotOccupied.
    """
    check_range(start, end)
    check_operating_hours(amenity, start, end)

    amenity_id = str(amenity["id"])

    conflicts = find_conflicts(slot_bookings(client, amenity_id, booking_date), start, end)
    if conflicts:
        raise SlotOccupied(_occupied_message(conflicts[0]))

    row = {
        "building_id": str(amenity["building_id"]),
        "amenity_id": amenity_id,
        "profile_id": requester.id,
        "resident_name": requester.full_name or "Resident",
        "flat_number": requester.flat_number or "",
        "date": booking_date.isoformat(),
        "start_time": format_time_of_day(start),
        "end_time": format_time_of_day(end),
    }

    try:
        res = client.table(TABLE).insert(row).execute()
    except Exception as e:
        if is_exclusion_violation(e):
            raise SlotOccupied("Slot occupied: just booked by someone else")
        raise persistence_error(e, "Failed to create booking")

    if not res.data:
        raise PersistenceError("Booking insert returned no data")
    record = res.data[0]

    # A concurrent proposal may have slipped past the scan; earliest stored wins
    rivals = find_conflicts(
        slot_bookings(client, amenity_id, booking_date), start, end, exclude_id=record["id"]
    )
    earlier = [r for r in rivals if _stored_order(r) < _stored_order(record)]
    if earlier:
        logger.warning(
            f"Booking race on amenity {amenity_id} {booking_date}: "
            f"discarding {record['id']}"
        )
        try:
            client.table(TABLE).delete().eq("id", record["id"]).execute()
        except Exception as e:
            raise persistence_error(e, "Failed to roll back clashing booking")
        raise SlotOccupied(_occupied_message(earlier[0]))

    logger.info(
        f"Booking {record['id']}: amenity {amenity_id} on {booking_date} "
        f"{row['start_time']}-{row['end_time']} for {requester.id}"
    )
    if feed is not None:
        feed.publish_row(ChangeOperation.INSERT, TABLE, record)
    return record


def can_cancel(booking: dict, requester) -> bool:
    if str(booking.get("profile_id")) == str(requester.id):
        return True
    if requester.role == UserRole.SUPER_ADMIN:
        return True
    return (
        requester.role == UserRole.BUILDING_ADMIN
        and str(requester.building_id) == str(booking.get("building_id"))
    )


def cancel_booking(client: Client, booking_id: str, requester, feed: ChangeFeed = None) -> dict:
    """Owner or building/super admin only; otherwise Forbidden."""
    booking = get_booking(client, booking_id)

    if not can_cancel(booking, requester):
        raise Forbidden("Only the owner or a building admin can cancel this booking")

    try:
        client.table(TABLE).delete().eq("id", booking_id).execute()
    except Exception as e:
        raise persistence_error(e, "Failed to cancel booking")

    logger.info(f"Booking {booking_id} cancelled by {requester.id}")
    if feed is not None:
        feed.publish_row(ChangeOperation.DELETE, TABLE, booking)
    return booking
