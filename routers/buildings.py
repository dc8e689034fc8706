# routers/buildings.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from supabase import Client

from dependencies.auth import get_current_user, CurrentUser
from dependencies.database import get_db_client
from core.permission_helpers import requires_permission, require_building_access
from core.utils import sanitize
from core.cache import cache_get, cache_set, cache_delete_prefix
from core.errors import handle_supabase_error
from core.logging_config import logger

from models.building import BuildingCreate, BuildingRead, BuildingAdminRead


router = APIRouter(
    prefix="/buildings",
    tags=["Buildings"]
)

CACHE_PREFIX = "buildings:"


# -----------------------------------------------------
# Helper - building lookup by name (portal join)
# -----------------------------------------------------
def find_building_by_name(client: Client, name: str) -> Optional[dict]:
    """Case-insensitive exact match on the building name. Cached 5 minutes."""
    name = (name or "").strip()
    if not name:
        return None

    cache_key = f"{CACHE_PREFIX}by_name:{name.lower()}"
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        # ilike without wildcards = case-insensitive equality
        escaped = name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        res = client.table("buildings").select("*").ilike("name", escaped).limit(1).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to look up building", 500)

    building = res.data[0] if res.data else None
    if building:
        cache_set(cache_key, building, ttl_seconds=300)
    return building


# ============================================================
# LIST BUILDINGS (super admin dashboard)
# ============================================================
@router.get(
    "",
    response_model=list[BuildingAdminRead],
    summary="List Buildings",
    description="""
    Retrieve every building with its access codes.

    **Caching:** Results are cached for 5 minutes.
    **Permissions:** Super admin only (`buildings:write`).
    """,
    dependencies=[Depends(requires_permission("buildings:write"))],
)
def list_buildings(
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of buildings to return (1-1000)"),
    client: Client = Depends(get_db_client),
):
    cache_key = f"{CACHE_PREFIX}list:{limit}"
    cached_result = cache_get(cache_key)
    if cached_result is not None:
        return cached_result

    try:
        res = (
            client.table("buildings")
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch buildings", 500)

    result = res.data or []
    cache_set(cache_key, result, ttl_seconds=300)
    return result


# ============================================================
# CURRENT USER'S BUILDING (no access codes)
# ============================================================
@router.get(
    "/me",
    response_model=BuildingRead,
    summary="Get My Building",
    dependencies=[Depends(requires_permission("buildings:read"))],
)
def get_my_building(
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    if not current_user.building_id:
        raise HTTPException(404, "You are not a member of any building")
    return get_building(current_user.building_id, current_user, client)


@router.get(
    "/{building_id}",
    response_model=BuildingRead,
    summary="Get Building",
    dependencies=[Depends(requires_permission("buildings:read"))],
)
def get_building(
    building_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    require_building_access(current_user, building_id)

    try:
        res = client.table("buildings").select("*").eq("id", building_id).limit(1).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch building", 500)

    if not res.data:
        raise HTTPException(404, f"Building '{building_id}' not found")
    return res.data[0]


# ============================================================
# CREATE BUILDING
# ============================================================
@router.post(
    "",
    response_model=BuildingAdminRead,
    status_code=201,
    summary="Create Building",
    dependencies=[Depends(requires_permission("buildings:write"))],
)
def create_building(payload: BuildingCreate, client: Client = Depends(get_db_client)):
    data = sanitize(payload.model_dump())

    existing = find_building_by_name(client, data["name"])
    if existing:
        raise HTTPException(400, f"Building '{payload.name}' already exists")

    try:
        insert_res = client.table("buildings").insert(data).execute()
    except Exception as e:
        error_detail = str(e).lower()
        if "duplicate" in error_detail or "unique" in error_detail:
            raise HTTPException(400, f"Building '{payload.name}' already exists")
        raise handle_supabase_error(e, "Failed to create building", 500)

    if not insert_res.data:
        raise HTTPException(500, "Insert returned no data")

    cache_delete_prefix(CACHE_PREFIX)
    logger.info(f"Building provisioned: {payload.name}")
    return insert_res.data[0]


# ============================================================
# DELETE BUILDING
# ============================================================
@router.delete(
    "/{building_id}",
    summary="Delete Building",
    dependencies=[Depends(requires_permission("buildings:write"))],
)
def delete_building(building_id: str, client: Client = Depends(get_db_client)):
    try:
        delete_res = (
            client.table("buildings")
            .delete()
            .eq("id", building_id)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete building", 500)

    if not delete_res.data:
        raise HTTPException(404, f"Building '{building_id}' not found")

    cache_delete_prefix(CACHE_PREFIX)
    logger.info(f"Building deleted: {building_id}")
    return {"success": True, "deleted_id": building_id}
