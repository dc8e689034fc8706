# models/visitor.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from models.enums import VisitorType, VisitorStatus


class GuestInfo(BaseModel):
    """Who is coming and why."""
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    purpose: str = Field(..., min_length=1)


class PreApprovedPassCreate(GuestInfo):
    """Resident issues a pass for their own unit."""
    pass


class WalkInCreate(GuestInfo):
    """Gate staff logs a visitor for a unit."""
    flat_number: str = Field(..., min_length=1)
    wing: Optional[str] = Field(None, description="Required when the flat number exists in more than one wing")


class CodeValidation(BaseModel):
    code: str = Field(..., pattern=r"^\s*\d{6}\s*$")


class VisitorDecision(BaseModel):
    approve: bool


class VisitorRead(BaseModel):
    id: str
    building_id: str
    wing: Optional[str] = None
    flat_number: str
    name: str
    phone: str
    purpose: str
    type: VisitorType
    status: VisitorStatus
    invite_code: Optional[str] = None
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VisitorArrival(BaseModel):
    """
    Emitted when a walk-in enters WAITING_APPROVAL.
    Consumed by the notification dispatcher.
    """
    visitor_id: str
    building_id: str
    wing: Optional[str] = None
    flat_number: str
    guest_name: str
    purpose: str
