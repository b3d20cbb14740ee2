"""Fine schemas.

Only ``unpaid`` and ``paid`` are ever written. ``overdue`` is derived on every
read from the due date and the current time; rows written before that rule
may still store it, and they are treated as unpaid everywhere.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from towify.utils.time_utils import as_utc, utcnow


class FineStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


# Stored values that mean "not yet paid". Legacy rows may carry "overdue".
OPEN_STATUS_VALUES = ("unpaid", "overdue")


class FineDisplayStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    OVERDUE = "overdue"


class Fine(BaseModel):
    """Row of the ``fines`` table."""

    id: str
    vehicle_id: str
    tow_id: Optional[str] = None
    amount: Decimal
    description: str
    issue_date: datetime
    due_date: Optional[datetime] = None
    status: FineStatus = FineStatus.UNPAID
    payment_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    created_by: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _reject_stored_overdue(cls, value):
        # Legacy rows may carry a stored "overdue"; it is recomputed on read
        if isinstance(value, str) and value.lower() == FineDisplayStatus.OVERDUE.value:
            return FineStatus.UNPAID
        return value

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.status != FineStatus.UNPAID or self.due_date is None:
            return False
        now = as_utc(now) if now else utcnow()
        return now > as_utc(self.due_date)

    def display_status(self, now: Optional[datetime] = None) -> FineDisplayStatus:
        """Status to show, evaluated against ``now`` (defaults to the current time)."""
        if self.status == FineStatus.PAID:
            return FineDisplayStatus.PAID
        if self.is_overdue(now):
            return FineDisplayStatus.OVERDUE
        return FineDisplayStatus.UNPAID


class FineCreate(BaseModel):
    """Input for issuing a fine."""

    vehicle_id: str
    amount: Decimal = Field(..., gt=0)
    description: str
    tow_id: Optional[str] = None

    @field_validator("description")
    @classmethod
    def _description_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please enter a description for the fine")
        return value
