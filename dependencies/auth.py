from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from supabase import Client

from dependencies.database import get_db_client
from models.enums import UserRole


bearer_scheme = HTTPBearer()


# ============================================================
# Current User Model (auth identity + profile row)
# ============================================================
class CurrentUser(BaseModel):
    id: str                         # Supabase Auth UID == profiles.id
    role: UserRole
    building_id: Optional[str] = None

    full_name: Optional[str] = None
    wing: Optional[str] = None
    flat_number: Optional[str] = None
    phone_number: Optional[str] = None
    is_verified: bool = False

    @property
    def display_name(self) -> str:
        name = self.full_name or "Resident"
        if self.flat_number:
            unit = f"{self.wing}-{self.flat_number}" if self.wing else self.flat_number
            return f"{name} ({unit})"
        return name


def unauthorized_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired authentication token",
        headers={"WWW-Authenticate": "Bearer"},
    )


# ============================================================
# AUTH DECODING (Supabase: validates JWT + loads the profile)
# ============================================================
def resolve_user(client: Client, token: str) -> CurrentUser:
    """
    Validate a Supabase access token and load the caller's profile.
    Shared by the HTTP dependency and the realtime websocket.
    """
    unauthorized = unauthorized_error()

    # ---------------------------------------------------------
    # Validate JWT via Supabase GoTrue
    # ---------------------------------------------------------
    try:
        auth_resp = client.auth.get_user(token)
        if not auth_resp or not auth_resp.user:
            raise unauthorized
        auth_user = auth_resp.user
    except HTTPException:
        raise
    except Exception:
        raise unauthorized

    # ---------------------------------------------------------
    # Profile row carries role, tenant and unit
    # ---------------------------------------------------------
    try:
        res = (
            client.table("profiles")
            .select("*")
            .eq("id", auth_user.id)
            .limit(1)
            .execute()
        )
    except Exception:
        raise HTTPException(500, "Failed to load profile")

    if not res.data:
        # Authenticated but never joined a building
        raise HTTPException(403, "Profile not found. Join a building first.")

    profile = res.data[0]

    try:
        role = UserRole(profile.get("role"))
    except ValueError:
        raise HTTPException(403, "Unknown role on profile")

    return CurrentUser(
        id=str(profile["id"]),
        role=role,
        building_id=str(profile["building_id"]) if profile.get("building_id") else None,
        full_name=profile.get("full_name"),
        wing=profile.get("wing"),
        flat_number=profile.get("flat_number"),
        phone_number=profile.get("phone_number"),
        is_verified=bool(profile.get("is_verified")),
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    client: Client = Depends(get_db_client),
) -> CurrentUser:
    return resolve_user(client, credentials.credentials)

