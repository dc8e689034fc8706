import hashlib
import hmac
import re
import secrets

from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel
from supabase import Client

from core.config import settings
from core.errors import handle_supabase_error
from core.logging_config import logger
from core.rate_limiter import require_rate_limit
from core.supabase_client import get_supabase_client
from core.utils import normalize_wing
from dependencies.auth import get_current_user, CurrentUser
from dependencies.database import get_db_client
from models.enums import UserRole
from models.profile import JoinRequest, ProfileRead, TokenResponse
from routers.buildings import find_building_by_name


router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
)

# Which building column holds each role's access code
ROLE_CODE_FIELDS = {
    UserRole.RESIDENT: "resident_code",
    UserRole.BUILDING_ADMIN: "admin_code",
    UserRole.SECURITY: "security_code",
}

INTERNAL_EMAIL_DOMAIN = "urbangate.internal"


# ============================================================
# MODELS
# ============================================================
class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# ============================================================
# Unit-locked identities
# ============================================================
def slot_identifier(building_id: str, role: UserRole, wing: str = None, flat_number: str = None) -> str:
    """
    One auth identity per (building, unit) for residents and per
    (building, role) for staff terminals.
    """
    if role == UserRole.RESIDENT:
        parts = [building_id, wing or "", flat_number or ""]
    else:
        parts = [building_id, "staff", role.value]
    return re.sub(r"[^a-z0-9]", "", "_".join(parts).lower())


def slot_credentials(slot: str, access_code: str) -> tuple[str, str]:
    """Internal email/password for a slot. The password never leaves the server."""
    secret = (settings.SUPABASE_SERVICE_ROLE_KEY or "").encode()
    digest = hmac.new(secret, f"{slot}:{access_code}".encode(), hashlib.sha256).hexdigest()
    return f"{slot}@{INTERNAL_EMAIL_DOMAIN}", f"ug_{digest}"


def _sign_in_or_register(email: str, password: str):
    """Sign the slot identity in, creating it on first use."""
    auth_client = get_supabase_client()
    if not auth_client:
        raise HTTPException(500, "Supabase client not configured")

    try:
        return auth_client.auth.sign_in_with_password({"email": email, "password": password})
    except Exception:
        logger.info(f"Creating portal identity {email}")

    try:
        auth_client.auth.admin.create_user(
            {"email": email, "password": password, "email_confirm": True}
        )
        return auth_client.auth.sign_in_with_password({"email": email, "password": password})
    except Exception as e:
        logger.warning(f"Portal identity setup failed for {email}: {type(e).__name__}")
        raise HTTPException(401, "Terminal authentication failed")


# ============================================================
# JOIN A BUILDING (access code)
# ============================================================
@router.post("/join", response_model=TokenResponse, summary="Join a building with its role access code")
def join_building(
    payload: JoinRequest,
    request: Request,
    client: Client = Depends(get_db_client),
):
    """
    Residents, building admins and security guards enter the building name,
    their role and the role's access code.

    - Residents identify their unit (wing + flat) and phone number. A unit
      already bound to another phone number is refused.
    - New residents wait for the building admin's verification; staff are
      verified immediately.
    """
    require_rate_limit(request, max_requests=settings.JOIN_RATE_LIMIT, scope="join")

    if payload.role not in ROLE_CODE_FIELDS:
        raise HTTPException(403, "Super admins sign in with email and password")

    building = find_building_by_name(client, payload.building_name)
    if not building:
        raise HTTPException(404, "Building not found. Please verify the name.")

    expected = str(building.get(ROLE_CODE_FIELDS[payload.role]) or "")
    if not expected or not secrets.compare_digest(payload.access_code.strip(), expected):
        logger.warning(f"Bad {payload.role} access code for building {building['id']}")
        raise HTTPException(401, f"Invalid access key for {payload.role}")

    is_resident = payload.role == UserRole.RESIDENT
    wing = normalize_wing(payload.wing) if is_resident else None
    flat_number = (payload.flat_number or "").strip() if is_resident else None
    phone_number = (payload.phone_number or "").strip() if is_resident else None

    if is_resident and not (flat_number and phone_number):
        raise HTTPException(400, "Residents must provide flat_number and phone_number")

    slot = slot_identifier(str(building["id"]), payload.role, wing, flat_number)
    email, password = slot_credentials(slot, expected)
    auth_resp = _sign_in_or_register(email, password)

    if not auth_resp or not auth_resp.user or not auth_resp.session:
        raise HTTPException(401, "Terminal authentication failed")

    user_id = auth_resp.user.id

    try:
        existing_res = (
            client.table("profiles")
            .select("phone_number, is_verified")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Identity verification failed", 500)

    existing = existing_res.data[0] if existing_res.data else None

    # Identity lock: a unit stays bound to the first phone number
    if is_resident and existing and existing.get("phone_number"):
        if existing["phone_number"].strip() != phone_number:
            logger.warning(f"Identity mismatch on unit slot {slot}")
            raise HTTPException(403, "This unit is registered to a different phone number")

    profile = {
        "id": user_id,
        "role": payload.role.value,
        "building_id": str(building["id"]),
        "full_name": payload.full_name.strip(),
        "wing": wing,
        "flat_number": flat_number,
        "phone_number": phone_number,
        "is_verified": bool(existing and existing.get("is_verified")) if is_resident else True,
    }

    try:
        upsert_res = client.table("profiles").upsert(profile).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Profile sync failed", 500)

    stored = upsert_res.data[0] if upsert_res.data else profile
    logger.info(f"{payload.role} joined building {building['id']} ({slot})")

    return TokenResponse(
        access_token=auth_resp.session.access_token,
        profile=ProfileRead(**stored),
    )


# ============================================================
# LOGIN (SUPABASE AUTH) - super admin accounts
# ============================================================
@router.post("/login", response_model=LoginResponse, summary="Authenticate with email and password")
def login(payload: LoginRequest, request: Request):
    require_rate_limit(request, max_requests=settings.JOIN_RATE_LIMIT, scope="login")

    email = payload.email.strip().lower()

    client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")

    try:
        response = client.auth.sign_in_with_password(
            {"email": email, "password": payload.password}
        )
    except Exception as e:
        # Log the error for debugging but don't expose details to user
        logger.warning(f"Login attempt failed for {email}: {type(e).__name__}")
        raise HTTPException(
            status_code=401,
            detail="Invalid email or password"
        )

    if not response.session or not response.session.access_token:
        raise HTTPException(401, "Invalid email or password")

    return LoginResponse(access_token=response.session.access_token)


# ============================================================
# CURRENT USER
# ============================================================
@router.get("/me", response_model=CurrentUser, summary="Current authenticated user")
def read_me(current_user: CurrentUser = Depends(get_current_user)):
    return current_user
