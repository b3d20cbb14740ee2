"""Notification schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Notification(BaseModel):
    """Row of the ``notifications`` table."""

    id: str
    user_id: str = Field(..., description="Recipient")
    type: str = Field(..., description="Type tag, e.g. tow, tow_accepted, complaint_update")
    title: str = ""
    message: str = ""
    related_id: Optional[str] = Field(None, description="ID of the tow, fine or complaint concerned")
    is_read: bool = False
    created_at: Optional[datetime] = None


class NotificationCreate(BaseModel):
    user_id: str
    type: str
    title: str
    message: str
    related_id: Optional[str] = None
    is_read: bool = False
