"""Vehicle schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

# Placeholder written for vehicle details nobody supplied
UNKNOWN = "unknown"


def normalize_plate(plate: str) -> str:
    """Normalize a license plate to its lookup form."""
    return plate.strip().upper()


class _PlateModel(BaseModel):

    @field_validator("license_plate", mode="before", check_fields=False)
    @classmethod
    def _normalize_plate(cls, value):
        if isinstance(value, str):
            return normalize_plate(value)
        return value


class Vehicle(_PlateModel):
    """Row of the ``vehicles`` table."""

    id: str
    owner_id: Optional[str] = Field(None, description="Owning user, None for vehicles recorded during a tow")
    license_plate: str
    make: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    registered_name: Optional[str] = None
    created_at: Optional[datetime] = None


class VehicleCreate(_PlateModel):
    """Owner-supplied vehicle registration."""

    license_plate: str = Field(..., min_length=1)
    make: str = UNKNOWN
    model: str = UNKNOWN
    color: str = UNKNOWN
    registered_name: Optional[str] = None

    @field_validator("make", "model", "color", mode="before")
    @classmethod
    def _blank_is_unknown(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return UNKNOWN
        return value.strip() if isinstance(value, str) else value


class VehicleUpdate(BaseModel):
    """Editable vehicle fields. The plate and owner are not editable."""

    make: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    registered_name: Optional[str] = None
