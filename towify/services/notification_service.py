"""In-app notifications."""

from typing import List, Optional

from towify.core.scope import Action, Table
from towify.database.table_client import Filter, Order
from towify.schemas.notification import Notification
from towify.services.scoped_service import ScopedService
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)


class NotificationService(ScopedService):
    """Every user reads and marks their own notifications."""

    async def list_notifications(self, unread_only: bool = False) -> List[Notification]:
        caller = self._caller()
        filters = [Filter.eq("is_read", False)] if unread_only else []
        return await self._find(
            caller, Table.NOTIFICATIONS, filters, order=[Order("created_at", ascending=False)]
        )

    async def unread_count(self) -> int:
        return len(await self.list_notifications(unread_only=True))

    async def mark_read(self, notification_id: str) -> Notification:
        """Mark one notification read.

        Raises:
            NotFoundError: If the notification is not the caller's
        """
        return await self._update(
            self._caller(), Table.NOTIFICATIONS, notification_id, {"is_read": True}
        )

    async def mark_all_read(self) -> int:
        """Mark every unread notification read. Returns how many changed."""
        caller = self._caller()
        scope = await self._scope(caller, Table.NOTIFICATIONS, Action.UPDATE)
        updated = await self.notifications.mark_read(scope.filters)
        scope.check(updated)
        LOGGER.info(f"Marked {len(updated)} notifications read", extra={"user_id": caller.user_id})
        return len(updated)

    async def notify(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        related_id: Optional[str] = None,
    ) -> Notification:
        """Send a notification to another user.

        Raises:
            ScopeViolation: If the caller may not create notifications
        """
        caller = self._caller()
        notification = await self._notify(caller, user_id, notification_type, title, message, related_id)
        LOGGER.info(
            f"Notification {notification.id} sent to {user_id}",
            extra={"type": notification_type},
        )
        return notification
