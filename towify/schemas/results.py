"""Result models returned by the scoped services."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from towify.schemas.fine import Fine
from towify.schemas.notification import Notification
from towify.schemas.tow import Tow
from towify.schemas.vehicle import Vehicle


class AmbiguousMatchWarning(BaseModel):
    """A fuzzy plate search matched more than one vehicle; the first was used."""

    plate: str
    match_count: int
    used_vehicle_id: str
    candidate_plates: List[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Found {self.match_count} vehicles with plates similar to {self.plate}. "
            f"Using the first match."
        )


class PlateSearchResult(BaseModel):
    vehicle: Optional[Vehicle] = Field(None, description="Vehicle to use, None when nothing matched")
    matches: List[Vehicle] = Field(default_factory=list)
    exact: bool = Field(False, description="Whether the exact pass produced the result")
    warning: Optional[AmbiguousMatchWarning] = None

    @property
    def found(self) -> bool:
        return self.vehicle is not None

    @property
    def ambiguous(self) -> bool:
        return self.warning is not None


class TowRecordResult(BaseModel):
    tow: Tow
    vehicle: Vehicle
    vehicle_created: bool = False
    fine: Optional[Fine] = None
    notification: Optional[Notification] = None
    warning: Optional[AmbiguousMatchWarning] = None


class OwnerSummary(BaseModel):
    vehicle_count: int = 0
    unpaid_fines: int = 0
    overdue_fines: int = 0
    amount_outstanding: Decimal = Decimal("0")
    recent_tows: List[Tow] = Field(default_factory=list)


class StaffSummary(BaseModel):
    pending_tows: int = 0
    active_tows: int = 0
    completed_today: int = 0
    new_requests: int = 0
    pending_complaints: int = 0
    vehicle_count: int = 0


class OfficerSummary(BaseModel):
    fines_issued: int = 0
    recent_fines: List[Fine] = Field(default_factory=list)
