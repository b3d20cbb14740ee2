"""Tow schemas.

A tow carries two status fields. ``request_status`` drives the staff intake
workflow, ``status`` is the physical lifecycle of the tow. The mapping between
them lives in ``towify.core.transitions``.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator, model_validator

from towify.schemas.vehicle import _PlateModel
from towify.utils.time_utils import utcnow


class TowStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RequestStatus(str, Enum):
    NEW = "new"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class Tow(_PlateModel):
    """Row of the ``tows`` table."""

    id: str
    vehicle_id: str
    license_plate: str = Field(..., description="Plate as recorded at tow time")
    location: str
    reason: str
    tow_date: datetime
    status: TowStatus = TowStatus.PENDING
    request_status: RequestStatus = RequestStatus.NEW
    notes: Optional[str] = None
    created_by: Optional[str] = None
    assigned_to: Optional[str] = None
    created_at: Optional[datetime] = None


class TowCreate(_PlateModel):
    """Input for recording a tow.

    Vehicle details are only used when the plate matches no vehicle and a new
    unowned vehicle has to be registered. Supplying ``fine_amount`` issues a
    fine linked to the tow.
    """

    license_plate: str = Field(..., min_length=1)
    location: str
    reason: str
    tow_date: datetime = Field(default_factory=utcnow)
    notes: str = ""

    make: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    registered_name: Optional[str] = None

    fine_amount: Optional[Decimal] = Field(None, gt=0)
    fine_description: Optional[str] = None

    @field_validator("location", "reason")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("notes")
    @classmethod
    def _strip_notes(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def _fine_needs_description(self) -> "TowCreate":
        if self.fine_amount is not None and not (self.fine_description or "").strip():
            raise ValueError("a fine needs a description")
        return self

    @property
    def issues_fine(self) -> bool:
        return self.fine_amount is not None
