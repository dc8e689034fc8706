# models/profile.py

from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, Field

from models.enums import UserRole


class ProfileRead(BaseModel):
    """A row of the profiles table (id = Supabase Auth user id)."""
    id: str
    role: UserRole
    building_id: Optional[str] = None
    full_name: Optional[str] = None
    wing: Optional[str] = None
    flat_number: Optional[str] = None
    phone_number: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    is_verified: bool = False
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VerificationUpdate(BaseModel):
    is_verified: bool


class NotificationSettingsUpdate(BaseModel):
    """Self-service channels for gate arrival alerts."""
    telegram_chat_id: Optional[str] = Field(None, description="Telegram chat to receive arrival alerts")
    push_subscription: Optional[dict[str, Any]] = Field(
        None, description="Browser PushSubscription JSON (endpoint + keys)"
    )


# -----------------------------------------------------
# Portal join (building access code login)
# -----------------------------------------------------
class JoinRequest(BaseModel):
    building_name: str = Field(..., min_length=1)
    role: UserRole
    access_code: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)

    # Residents only
    wing: Optional[str] = None
    flat_number: Optional[str] = None
    phone_number: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    profile: ProfileRead
