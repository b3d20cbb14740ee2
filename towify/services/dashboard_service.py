"""Per-role dashboard summaries.

Each summary is assembled from scoped reads, so a dashboard can only count
rows its role is allowed to see.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from towify.core.scope import Table
from towify.database.table_client import Filter, Order
from towify.schemas.complaint import ComplaintStatus
from towify.schemas.fine import OPEN_STATUS_VALUES, FineDisplayStatus
from towify.schemas.results import OfficerSummary, OwnerSummary, StaffSummary
from towify.schemas.tow import RequestStatus, TowStatus
from towify.services.scoped_service import ScopedService
from towify.utils.time_utils import as_utc, utcnow

RECENT_LIMIT = 5


class DashboardService(ScopedService):

    async def owner_summary(self, now: Optional[datetime] = None) -> OwnerSummary:
        """Vehicles, outstanding fines and recent tows of the signed-in owner."""
        caller = self._caller()
        vehicles = await self._find(caller, Table.VEHICLES, [Filter.eq("owner_id", caller.user_id)])
        unpaid = await self._find(caller, Table.FINES, [Filter.in_("status", OPEN_STATUS_VALUES)])
        recent_tows = await self._find(
            caller, Table.TOWS, order=[Order("tow_date", ascending=False)], limit=RECENT_LIMIT
        )
        overdue = [f for f in unpaid if f.display_status(now) == FineDisplayStatus.OVERDUE]
        return OwnerSummary(
            vehicle_count=len(vehicles),
            unpaid_fines=len(unpaid),
            overdue_fines=len(overdue),
            amount_outstanding=sum((f.amount for f in unpaid), Decimal("0")),
            recent_tows=recent_tows,
        )

    async def staff_summary(self, now: Optional[datetime] = None) -> StaffSummary:
        """Tow workload, open complaints and vehicle count.

        ``completed_today`` counts completed tows created since midnight UTC
        of ``now``.
        """
        caller = self._caller()
        now = as_utc(now) if now else utcnow()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

        tows = await self._find(caller, Table.TOWS)
        pending_complaints = await self._find(
            caller, Table.COMPLAINTS, [Filter.eq("status", ComplaintStatus.PENDING.value)]
        )
        vehicles = await self._find(caller, Table.VEHICLES)

        completed_today = [
            t
            for t in tows
            if t.status == TowStatus.COMPLETED and t.created_at and as_utc(t.created_at) >= midnight
        ]
        return StaffSummary(
            pending_tows=sum(1 for t in tows if t.status == TowStatus.PENDING),
            active_tows=sum(1 for t in tows if t.status == TowStatus.ACTIVE),
            completed_today=len(completed_today),
            new_requests=sum(1 for t in tows if t.request_status == RequestStatus.NEW),
            pending_complaints=len(pending_complaints),
            vehicle_count=len(vehicles),
        )

    async def officer_summary(self) -> OfficerSummary:
        caller = self._caller()
        issued = await self._find(
            caller,
            Table.FINES,
            [Filter.eq("created_by", caller.user_id)],
            order=[Order("issue_date", ascending=False)],
        )
        return OfficerSummary(fines_issued=len(issued), recent_fines=issued[:RECENT_LIMIT])
