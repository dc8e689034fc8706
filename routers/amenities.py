# routers/amenities.py

from fastapi import APIRouter, HTTPException, Depends, Query
from supabase import Client

from dependencies.auth import get_current_user, CurrentUser
from dependencies.database import get_db_client, get_change_feed
from core.change_feed import ChangeFeed
from core.permission_helpers import requires_permission, resolve_building_id, require_building_access
from core.errors import handle_supabase_error
from core.logging_config import logger

from models.amenity import AmenityCreate, AmenityRead
from models.enums import ChangeOperation


router = APIRouter(
    prefix="/amenities",
    tags=["Amenities"],
)


@router.get(
    "",
    response_model=list[AmenityRead],
    summary="List amenities",
    dependencies=[Depends(requires_permission("amenities:read"))],
)
def list_amenities(
    building_id: str = Query(None, description="Super admin only"),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    building_id = resolve_building_id(current_user, building_id)

    try:
        res = (
            client.table("amenities")
            .select("*")
            .eq("building_id", building_id)
            .order("name")
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch amenities", 500)

    return res.data or []


@router.post(
    "",
    response_model=AmenityRead,
    status_code=201,
    summary="Create amenity",
    dependencies=[Depends(requires_permission("amenities:write"))],
)
def create_amenity(
    payload: AmenityCreate,
    building_id: str = Query(None, description="Super admin only"),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    building_id = resolve_building_id(current_user, building_id)

    data = payload.model_dump(mode="json")
    data["name"] = data["name"].strip()
    data["building_id"] = building_id

    try:
        res = client.table("amenities").insert(data).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create amenity", 500)

    if not res.data:
        raise HTTPException(500, "Insert returned no data")

    record = res.data[0]
    logger.info(f"Amenity '{record['name']}' added to building {building_id}")
    feed.publish_row(ChangeOperation.INSERT, "amenities", record)
    return record


@router.delete(
    "/{amenity_id}",
    summary="Delete amenity",
    dependencies=[Depends(requires_permission("amenities:write"))],
)
def delete_amenity(
    amenity_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    try:
        existing = client.table("amenities").select("*").eq("id", amenity_id).limit(1).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to load amenity", 500)

    if not existing.data:
        raise HTTPException(404, "Amenity not found")

    amenity = existing.data[0]
    require_building_access(current_user, amenity["building_id"])

    try:
        client.table("amenities").delete().eq("id", amenity_id).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete amenity", 500)

    logger.info(f"Amenity {amenity_id} removed by {current_user.id}")
    feed.publish_row(ChangeOperation.DELETE, "amenities", amenity)
    return {"success": True, "deleted_id": amenity_id}
