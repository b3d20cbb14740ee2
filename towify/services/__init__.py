"""Service layer modules."""

from towify.services.auth_service import AuthService
from towify.services.complaint_service import ComplaintService
from towify.services.dashboard_service import DashboardService
from towify.services.fine_service import FineService
from towify.services.notification_service import NotificationService
from towify.services.role_router import DASHBOARDS, RoleRouter, resolve_destination
from towify.services.scoped_service import Caller, ScopedService
from towify.services.session_service import SessionResolver, SessionStore
from towify.services.tow_service import TowService
from towify.services.vehicle_service import VehicleService

__all__ = [
    "AuthService",
    "Caller",
    "ComplaintService",
    "DASHBOARDS",
    "DashboardService",
    "FineService",
    "NotificationService",
    "RoleRouter",
    "ScopedService",
    "SessionResolver",
    "SessionStore",
    "TowService",
    "VehicleService",
    "resolve_destination",
]
