# models/amenity.py

from datetime import time
from typing import Optional
from pydantic import BaseModel, Field, field_serializer, model_validator


class AmenityBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    capacity: int = Field(10, ge=1)
    open_time: Optional[time] = Field(None, description="HH:MM, inclusive")
    close_time: Optional[time] = Field(None, description="HH:MM, inclusive")

    @field_serializer("open_time", "close_time")
    def serialize_time(self, value: Optional[time]):
        return value.strftime("%H:%M") if value else None


class AmenityCreate(AmenityBase):

    @model_validator(mode="after")
    def check_hours(self):
        if (self.open_time is None) != (self.close_time is None):
            raise ValueError("open_time and close_time must be set together")
        if self.open_time and self.open_time >= self.close_time:
            raise ValueError("open_time must be before close_time")
        return self


class AmenityRead(AmenityBase):
    id: str
    building_id: str

    model_config = {"from_attributes": True}
