"""Repository layer modules."""

from towify.repositories.base_repository import BaseRepository
from towify.repositories.complaint_repository import ComplaintRepository
from towify.repositories.fine_repository import FineRepository
from towify.repositories.notification_repository import NotificationRepository
from towify.repositories.profile_repository import ProfileRepository
from towify.repositories.tow_repository import TowRepository
from towify.repositories.vehicle_repository import VehicleRepository

__all__ = [
    "BaseRepository",
    "ComplaintRepository",
    "FineRepository",
    "NotificationRepository",
    "ProfileRepository",
    "TowRepository",
    "VehicleRepository",
]
