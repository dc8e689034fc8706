from typing import Optional

from fastapi import Depends, HTTPException
from dependencies.auth import get_current_user, CurrentUser
from core.permissions import ROLE_PERMISSIONS, UNVERIFIED_PERMISSIONS
from core.utils import normalize_wing
from models.enums import UserRole


# -----------------------------------------------------
# Collect effective permissions for a role
#   • unverified residents are reduced to the bare minimum
# -----------------------------------------------------
def get_effective_permissions(user: CurrentUser) -> set:
    # Super admin = master key
    if user.role == UserRole.SUPER_ADMIN:
        return {"*"}

    if user.role == UserRole.RESIDENT and not user.is_verified:
        return set(UNVERIFIED_PERMISSIONS)

    return set(ROLE_PERMISSIONS.get(user.role, []))


# -----------------------------------------------------
# Permission evaluation
# -----------------------------------------------------
def has_permission(user: CurrentUser, permission: str) -> bool:
    effective = get_effective_permissions(user)

    # Wildcard grants everything
    if "*" in effective:
        return True

    return permission in effective


# -----------------------------------------------------
# FastAPI dependency wrapper
# -----------------------------------------------------
def requires_permission(permission: str):
    """
    Usage:
        @router.post("/", dependencies=[Depends(requires_permission("notices:write"))])
    """

    def dependency(current_user: CurrentUser = Depends(get_current_user)):
        if not has_permission(current_user, permission):
            detail = f"Insufficient permissions: '{permission}' required"
            if current_user.role == UserRole.RESIDENT and not current_user.is_verified:
                detail = "Your account is awaiting verification by the building admin"
            raise HTTPException(status_code=403, detail=detail)
        return current_user

    return dependency


# ============================================================
# TENANT-LEVEL HELPERS
# ============================================================

def is_super_admin(user: CurrentUser) -> bool:
    return user.role == UserRole.SUPER_ADMIN


def is_admin(user: CurrentUser) -> bool:
    """Building admin or super admin."""
    return user.role in (UserRole.BUILDING_ADMIN, UserRole.SUPER_ADMIN)


def require_admin(user: CurrentUser):
    if not is_admin(user):
        raise HTTPException(
            status_code=403,
            detail="Building admin or super admin role required"
        )


def require_building_access(user: CurrentUser, building_id: str):
    """
    Tenant isolation: everyone except the super admin is confined to the
    building on their profile.
    """
    if is_super_admin(user):
        return
    if not user.building_id or str(user.building_id) != str(building_id):
        raise HTTPException(
            status_code=403,
            detail="You do not have access to this building"
        )


def resolve_building_id(user: CurrentUser, building_id: str = None) -> str:
    """
    Building scope for a request: the caller's own building, or an explicit
    one for the super admin.
    """
    if building_id:
        require_building_access(user, building_id)
        return building_id
    if not user.building_id:
        raise HTTPException(400, "building_id is required")
    return user.building_id


def require_unit(user: CurrentUser) -> tuple[Optional[str], str]:
    """
    Residents act on their own unit only. Returns ``(wing, flat_number)``;
    wing is None in buildings without wings.
    """
    if not user.flat_number:
        raise HTTPException(400, "Your profile has no flat number")
    return normalize_wing(user.wing), user.flat_number.strip()
