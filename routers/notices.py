# routers/notices.py

from fastapi import APIRouter, HTTPException, Depends, Query
from supabase import Client

from dependencies.auth import get_current_user, CurrentUser
from dependencies.database import get_db_client, get_change_feed
from core.change_feed import ChangeFeed
from core.permission_helpers import requires_permission, resolve_building_id, require_building_access
from core.errors import handle_supabase_error
from core.logging_config import logger

from models.enums import ChangeOperation
from models.notice import NoticeCreate, NoticeRead


router = APIRouter(
    prefix="/notices",
    tags=["Notices"],
)


# -----------------------------------------------------
# GET /notices - building notice board, newest first
# -----------------------------------------------------
@router.get(
    "",
    response_model=list[NoticeRead],
    summary="Building notice board",
    dependencies=[Depends(requires_permission("notices:read"))],
)
def list_notices(
    limit: int = Query(50, ge=1, le=200),
    building_id: str = Query(None, description="Super admin only"),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    building_id = resolve_building_id(current_user, building_id)

    try:
        res = (
            client.table("notices")
            .select("*")
            .eq("building_id", building_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch notices", 500)

    return res.data or []


@router.post(
    "",
    response_model=NoticeRead,
    status_code=201,
    summary="Post a notice",
    dependencies=[Depends(requires_permission("notices:write"))],
)
def create_notice(
    payload: NoticeCreate,
    building_id: str = Query(None, description="Super admin only"),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    data = {
        "building_id": resolve_building_id(current_user, building_id),
        "title": payload.title.strip(),
        "content": payload.content.strip(),
    }

    try:
        res = client.table("notices").insert(data).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create notice", 500)

    if not res.data:
        raise HTTPException(500, "Insert returned no data")

    record = res.data[0]
    logger.info(f"Notice {record['id']} posted in building {data['building_id']}")
    feed.publish_row(ChangeOperation.INSERT, "notices", record)
    return record


@router.delete(
    "/{notice_id}",
    summary="Remove a notice",
    dependencies=[Depends(requires_permission("notices:write"))],
)
def delete_notice(
    notice_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    try:
        existing = client.table("notices").select("*").eq("id", notice_id).limit(1).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to load notice", 500)

    if not existing.data:
        raise HTTPException(404, "Notice not found")

    notice = existing.data[0]
    require_building_access(current_user, notice["building_id"])

    try:
        client.table("notices").delete().eq("id", notice_id).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete notice", 500)

    feed.publish_row(ChangeOperation.DELETE, "notices", notice)
    return {"success": True, "deleted_id": notice_id}
