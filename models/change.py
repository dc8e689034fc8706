# models/change.py

from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, Field

from core.utils import utc_now
from models.enums import ChangeOperation


class ChangeEvent(BaseModel):
    """One row-level change, as delivered to realtime subscribers."""
    operation: ChangeOperation
    table: str
    building_id: Optional[str] = None
    record: dict[str, Any] = Field(default_factory=dict)
    # When the row was written (core.change_feed.commit_time), not when published
    committed_at: datetime = Field(default_factory=utc_now)

    @property
    def record_id(self) -> Optional[str]:
        value = self.record.get("id")
        return str(value) if value is not None else None


class DatabaseWebhookPayload(BaseModel):
    """Body of a Supabase database webhook (INSERT / UPDATE / DELETE)."""
    type: str
    table: str
    schema_: Optional[str] = Field(None, alias="schema")
    record: Optional[dict[str, Any]] = None
    old_record: Optional[dict[str, Any]] = None
