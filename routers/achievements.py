# routers/achievements.py

from fastapi import APIRouter, HTTPException, Depends, Query
from supabase import Client

from dependencies.auth import get_current_user, CurrentUser
from dependencies.database import get_db_client, get_change_feed
from core.change_feed import ChangeFeed
from core.permission_helpers import requires_permission, resolve_building_id, require_building_access
from core.errors import handle_supabase_error
from core.utils import sanitize

from models.enums import ChangeOperation
from models.notice import AchievementCreate, AchievementRead


router = APIRouter(
    prefix="/achievements",
    tags=["Achievements"],
)


@router.get(
    "",
    response_model=list[AchievementRead],
    summary="Community achievements",
    dependencies=[Depends(requires_permission("achievements:read"))],
)
def list_achievements(
    building_id: str = Query(None, description="Super admin only"),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    building_id = resolve_building_id(current_user, building_id)

    try:
        res = (
            client.table("achievements")
            .select("*")
            .eq("building_id", building_id)
            .order("created_at", desc=True)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch achievements", 500)

    return res.data or []


@router.post(
    "",
    response_model=AchievementRead,
    status_code=201,
    summary="Celebrate an achievement",
    dependencies=[Depends(requires_permission("achievements:write"))],
)
def create_achievement(
    payload: AchievementCreate,
    building_id: str = Query(None, description="Super admin only"),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    data = sanitize(payload.model_dump())
    data["building_id"] = resolve_building_id(current_user, building_id)

    try:
        res = client.table("achievements").insert(data).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create achievement", 500)

    if not res.data:
        raise HTTPException(500, "Insert returned no data")

    feed.publish_row(ChangeOperation.INSERT, "achievements", res.data[0])
    return res.data[0]


@router.delete(
    "/{achievement_id}",
    summary="Remove an achievement",
    dependencies=[Depends(requires_permission("achievements:write"))],
)
def delete_achievement(
    achievement_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    try:
        existing = client.table("achievements").select("*").eq("id", achievement_id).limit(1).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to load achievement", 500)

    if not existing.data:
        raise HTTPException(404, "Achievement not found")

    achievement = existing.data[0]
    require_building_access(current_user, achievement["building_id"])

    try:
        client.table("achievements").delete().eq("id", achievement_id).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete achievement", 500)

    feed.publish_row(ChangeOperation.DELETE, "achievements", achievement)
    return {"success": True, "deleted_id": achievement_id}
