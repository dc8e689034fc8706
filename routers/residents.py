# routers/residents.py

from fastapi import APIRouter, HTTPException, Depends, Query
from supabase import Client

from dependencies.auth import get_current_user, CurrentUser
from dependencies.database import get_db_client, get_change_feed
from core.change_feed import ChangeFeed
from core.permission_helpers import requires_permission, resolve_building_id, require_building_access
from core.errors import handle_supabase_error
from core.logging_config import logger
from core.utils import utc_now_iso

from models.enums import ChangeOperation, UserRole
from models.profile import ProfileRead, VerificationUpdate, NotificationSettingsUpdate


router = APIRouter(
    prefix="/residents",
    tags=["Residents"],
)

# Directory view never exposes notification channels
DIRECTORY_FIELDS = "id, full_name, wing, flat_number, is_verified"


# ============================================================
# ADMIN - resident roster (unverified first)
# ============================================================
@router.get(
    "",
    response_model=list[ProfileRead],
    summary="List residents of a building",
    dependencies=[Depends(requires_permission("residents:read"))],
)
def list_residents(
    building_id: str = Query(None, description="Super admin only: building to inspect"),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    building_id = resolve_building_id(current_user, building_id)

    try:
        res = (
            client.table("profiles")
            .select("*")
            .eq("building_id", building_id)
            .eq("role", UserRole.RESIDENT.value)
            .order("created_at", desc=True)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch residents", 500)

    rows = res.data or []
    # Pending approvals on top; stable sort keeps newest-first within each group
    rows.sort(key=lambda r: bool(r.get("is_verified")))
    return rows


# ============================================================
# RESIDENT - neighbour directory (verified only)
# ============================================================
@router.get(
    "/directory",
    summary="Verified residents of my building",
    dependencies=[Depends(requires_permission("messages:read"))],
)
def resident_directory(
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    building_id = resolve_building_id(current_user)

    try:
        res = (
            client.table("profiles")
            .select(DIRECTORY_FIELDS)
            .eq("building_id", building_id)
            .eq("role", UserRole.RESIDENT.value)
            .eq("is_verified", True)
            .order("flat_number")
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch resident directory", 500)

    return {"success": True, "data": res.data or []}


# ============================================================
# ADMIN - verify / revoke a resident
# ============================================================
@router.patch(
    "/{profile_id}/verification",
    response_model=ProfileRead,
    summary="Verify or revoke a resident",
    dependencies=[Depends(requires_permission("residents:verify"))],
)
def set_verification(
    profile_id: str,
    payload: VerificationUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    try:
        existing = (
            client.table("profiles")
            .select("id, building_id, role")
            .eq("id", profile_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to load resident", 500)

    if not existing.data or existing.data[0].get("role") != UserRole.RESIDENT.value:
        raise HTTPException(404, "Resident not found")

    require_building_access(current_user, existing.data[0]["building_id"])

    try:
        res = (
            client.table("profiles")
            .update({"is_verified": payload.is_verified, "updated_at": utc_now_iso()})
            .eq("id", profile_id)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to update verification", 500)

    if not res.data:
        raise HTTPException(404, "Resident not found")

    record = res.data[0]
    action = "verified" if payload.is_verified else "revoked"
    logger.info(f"Resident {profile_id} {action} by {current_user.id}")
    feed.publish_row(ChangeOperation.UPDATE, "profiles", record)
    return record


# ============================================================
# SELF - notification channels
# ============================================================
@router.put(
    "/me/notifications",
    summary="Register Telegram / web push channels",
)
def update_notification_settings(
    payload: NotificationSettingsUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    """
    Set (or clear with null) the channels used for gate arrival alerts.
    Only fields present in the body are changed.
    """
    if current_user.role != UserRole.RESIDENT:
        raise HTTPException(403, "Only residents receive arrival alerts")

    update_data = payload.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(400, "No fields to update")
    update_data["updated_at"] = utc_now_iso()

    if "telegram_chat_id" in update_data and update_data["telegram_chat_id"] is not None:
        update_data["telegram_chat_id"] = update_data["telegram_chat_id"].strip() or None

    try:
        res = (
            client.table("profiles")
            .update(update_data)
            .eq("id", current_user.id)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to update notification settings", 500)

    if not res.data:
        raise HTTPException(404, "Profile not found")

    record = res.data[0]
    return {
        "success": True,
        "data": {
            "telegram_chat_id": record.get("telegram_chat_id"),
            "push_enabled": bool(record.get("push_subscription")),
        },
    }
