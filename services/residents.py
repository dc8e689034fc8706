# services/residents.py

from typing import Optional
from supabase import Client

from core.errors import persistence_error
from core.utils import normalize_wing
from models.enums import UserRole


def find_unit_residents(
    client: Client,
    building_id: str,
    flat_number: str,
    wing: Optional[str] = None,
    verified_only: bool = False,
) -> list[dict]:
    """Resident profiles registered to a unit of a building."""
    try:
        query = (
            client.table("profiles")
            .select("*")
            .eq("building_id", building_id)
            .eq("role", UserRole.RESIDENT.value)
            .eq("flat_number", flat_number.strip())
        )
        wing = normalize_wing(wing)
        if wing:
            query = query.eq("wing", wing)
        if verified_only:
            query = query.eq("is_verified", True)
        res = query.execute()
    except Exception as e:
        raise persistence_error(e, "Failed to look up unit residents")

    return res.data or []
