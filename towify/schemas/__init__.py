"""Pydantic schemas for sessions, credentials and backend rows."""

from towify.schemas.auth import (
    AuthEvent,
    Credential,
    Profile,
    SignInRequest,
    SignUpRequest,
    SignUpResult,
)
from towify.schemas.complaint import (
    Complaint,
    ComplaintCreate,
    ComplaintStatus,
    ComplaintType,
)
from towify.schemas.fine import Fine, FineCreate, FineDisplayStatus, FineStatus
from towify.schemas.notification import Notification, NotificationCreate
from towify.schemas.results import (
    AmbiguousMatchWarning,
    OfficerSummary,
    OwnerSummary,
    PlateSearchResult,
    StaffSummary,
    TowRecordResult,
)
from towify.schemas.session import Destination, Role, Session, SessionState
from towify.schemas.tow import RequestStatus, Tow, TowCreate, TowStatus
from towify.schemas.vehicle import (
    UNKNOWN,
    Vehicle,
    VehicleCreate,
    VehicleUpdate,
    normalize_plate,
)

__all__ = [
    "AuthEvent",
    "Credential",
    "Profile",
    "SignInRequest",
    "SignUpRequest",
    "SignUpResult",
    "Complaint",
    "ComplaintCreate",
    "ComplaintStatus",
    "ComplaintType",
    "Fine",
    "FineCreate",
    "FineDisplayStatus",
    "FineStatus",
    "Notification",
    "NotificationCreate",
    "AmbiguousMatchWarning",
    "OfficerSummary",
    "OwnerSummary",
    "PlateSearchResult",
    "StaffSummary",
    "TowRecordResult",
    "Destination",
    "Role",
    "Session",
    "SessionState",
    "RequestStatus",
    "Tow",
    "TowCreate",
    "TowStatus",
    "UNKNOWN",
    "Vehicle",
    "VehicleCreate",
    "VehicleUpdate",
    "normalize_plate",
]
