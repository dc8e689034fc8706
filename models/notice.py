# models/notice.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class NoticeCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)


class NoticeRead(NoticeCreate):
    id: str
    building_id: str
    created_at: Optional[datetime] = None


class AchievementCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: Optional[str] = None
    image_url: Optional[str] = None


class AchievementRead(AchievementCreate):
    id: str
    building_id: str
    created_at: Optional[datetime] = None
