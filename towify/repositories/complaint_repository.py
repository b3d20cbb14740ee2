"""Repository for the ``complaints`` table."""

from towify.core.scope import Table
from towify.repositories.base_repository import BaseRepository
from towify.schemas.complaint import Complaint


class ComplaintRepository(BaseRepository[Complaint]):
    table = Table.COMPLAINTS
    model = Complaint
