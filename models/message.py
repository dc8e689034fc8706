# models/message.py

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, model_validator

# Base64 data URLs inflate the payload by ~4/3
MAX_IMAGE_BYTES = 2 * 1024 * 1024
MAX_IMAGE_URL_LENGTH = (MAX_IMAGE_BYTES * 4) // 3 + 64


class MessageCreate(BaseModel):
    """Chat message. recipient_id None = building-wide channel."""
    content: Optional[str] = Field(None, description="Message text")
    image_url: Optional[str] = Field(
        None,
        max_length=MAX_IMAGE_URL_LENGTH,
        description="Image as URL or data URL (max 2MB)",
    )
    recipient_id: Optional[str] = Field(None, description="Profile ID for a private message")

    @model_validator(mode="after")
    def require_body(self):
        if not (self.content and self.content.strip()) and not self.image_url:
            raise ValueError("A message needs text or an image")
        return self


class MessageRead(BaseModel):
    id: str
    building_id: str
    profile_id: str
    recipient_id: Optional[str] = None
    user_name: str
    content: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
