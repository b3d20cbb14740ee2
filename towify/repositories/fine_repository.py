"""Repository for the ``fines`` table."""

from datetime import datetime
from typing import Optional, Sequence

from towify.core.scope import Table
from towify.database.table_client import Filter
from towify.repositories.base_repository import BaseRepository
from towify.schemas.fine import OPEN_STATUS_VALUES, Fine, FineStatus


class FineRepository(BaseRepository[Fine]):
    table = Table.FINES
    model = Fine

    async def mark_paid(
        self,
        fine_id: str,
        payment_date: datetime,
        transaction_id: str,
        filters: Sequence[Filter] = (),
    ) -> Optional[Fine]:
        """Flip an unpaid fine to paid in a single conditional update.

        The update only matches while the row is still open (unpaid, or a
        legacy stored overdue), so a second payment can never overwrite the
        first one's date and transaction id.

        Returns:
            The paid fine, or None if no open row matched
        """
        rows = await self.update(
            {
                "status": FineStatus.PAID.value,
                "payment_date": payment_date,
                "transaction_id": transaction_id,
            },
            [Filter.eq("id", fine_id), Filter.in_("status", OPEN_STATUS_VALUES), *filters],
        )
        return rows[0] if rows else None
