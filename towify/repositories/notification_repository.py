"""Repository for the ``notifications`` table."""

from typing import List, Sequence

from towify.core.scope import Table
from towify.database.table_client import Filter
from towify.repositories.base_repository import BaseRepository
from towify.schemas.notification import Notification


class NotificationRepository(BaseRepository[Notification]):
    table = Table.NOTIFICATIONS
    model = Notification

    async def mark_read(self, filters: Sequence[Filter]) -> List[Notification]:
        return await self.update({"is_read": True}, [*filters, Filter.eq("is_read", False)])
