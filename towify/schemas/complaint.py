"""Complaint schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator


class ComplaintType(str, Enum):
    GENERAL = "general"
    VEHICLE = "vehicle"
    FINE = "fine"
    TOW = "tow"


class ComplaintStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    RESOLVED = "resolved"
    REJECTED = "rejected"

    @property
    def is_closed(self) -> bool:
        return self in (ComplaintStatus.RESOLVED, ComplaintStatus.REJECTED)


class Complaint(BaseModel):
    """Row of the ``complaints`` table.

    Closure fields are only guaranteed on complaints closed through
    ``ComplaintService``; older rejected rows may lack ``resolved_by`` and
    ``resolved_at``.
    """

    id: str
    user_id: str
    subject: str
    description: str
    type: ComplaintType = ComplaintType.GENERAL
    vehicle_id: Optional[str] = None
    tow_id: Optional[str] = None
    fine_id: Optional[str] = None
    status: ComplaintStatus = ComplaintStatus.PENDING
    response: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    created_at: Optional[datetime] = None


class ComplaintCreate(BaseModel):
    """Input for submitting a complaint."""

    subject: str
    description: str
    type: ComplaintType = ComplaintType.GENERAL
    vehicle_id: Optional[str] = None
    tow_id: Optional[str] = None
    fine_id: Optional[str] = None

    @field_validator("subject", "description")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _vehicle_for_specific_types(self) -> "ComplaintCreate":
        if self.type != ComplaintType.GENERAL and not self.vehicle_id:
            raise ValueError("Please select a vehicle for your complaint")
        return self
