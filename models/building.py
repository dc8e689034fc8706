# models/building.py

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator


# -------------------------------------------------
# Shared fields
# -------------------------------------------------
class BuildingBase(BaseModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)


# -------------------------------------------------
# Create
# -------------------------------------------------
class BuildingCreate(BuildingBase):
    """
    Used by the super admin when provisioning a building.
    No ID supplied - Supabase generates UUID.
    Each role joins the building with its own access code.
    """
    resident_code: str = Field(..., min_length=4)
    admin_code: str = Field(..., min_length=4)
    security_code: str = Field(..., min_length=4)


# -------------------------------------------------
# Read (Supabase → API response)
# -------------------------------------------------
class BuildingRead(BuildingBase):
    id: str                      # UUID STRING from Supabase
    created_at: Optional[datetime] = None

    # Normalize UUID → str always
    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v):
        if isinstance(v, UUID):
            return str(v)
        return v

    # Parse trailing Z timestamps
    @field_validator("created_at", mode="before")
    @classmethod
    def normalize_created_at(cls, v):
        if isinstance(v, str) and v.endswith("Z"):
            return v.replace("Z", "+00:00")
        return v


class BuildingAdminRead(BuildingRead):
    """Super-admin view, includes the access codes."""
    resident_code: str
    admin_code: str
    security_code: str
