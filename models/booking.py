# models/booking.py

import datetime as dt
from typing import Optional
from pydantic import BaseModel, Field, field_serializer


class BookingCreate(BaseModel):
    amenity_id: str
    date: dt.date
    start_time: dt.time = Field(..., description="HH:MM")
    end_time: dt.time = Field(..., description="HH:MM, exclusive")


class BookingRead(BaseModel):
    id: str
    building_id: str
    amenity_id: str
    profile_id: str
    resident_name: str
    flat_number: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    created_at: Optional[dt.datetime] = None

    model_config = {"from_attributes": True}

    @field_serializer("start_time", "end_time")
    def serialize_time(self, value: dt.time):
        return value.strftime("%H:%M")
