"""Fine issuing, listing and payment."""

import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from towify.core.config import settings
from towify.core.exceptions import FineAlreadyPaidError
from towify.core.scope import Action, Table, rule_for
from towify.database.table_client import Filter, Order, TableClient
from towify.schemas.fine import OPEN_STATUS_VALUES, Fine, FineCreate, FineDisplayStatus, FineStatus
from towify.services.scoped_service import ScopedService
from towify.services.session_service import SessionStore
from towify.utils.logging import get_logger
from towify.utils.time_utils import as_utc, utcnow

LOGGER = get_logger(__name__)


def generate_transaction_id() -> str:
    """Payment reference for the mock payment flow."""
    return f"TX-{uuid.uuid4().hex.upper()}"


class FineService(ScopedService):
    """Fines visible to the caller.

    Staff and officers issue fines; officers also read all fines. Owners read
    and pay the fines on their own vehicles. Overdue is never stored: it is
    derived from the due date whenever fines are read.
    """

    def __init__(self, session_store: SessionStore, tables: TableClient, due_days: Optional[int] = None):
        """Initialize the service.

        Args:
            session_store: Store holding the current session
            tables: Backend table client
            due_days: Days from issue until a fine falls due
        """
        super().__init__(session_store, tables)
        self.due_days = due_days if due_days is not None else settings.fine_due_days

    async def issue_fine(self, data: FineCreate, now: Optional[datetime] = None) -> Fine:
        """Issue an unpaid fine against an existing vehicle.

        Args:
            data: Fine details
            now: Issue time, defaults to the current time

        Returns:
            The stored fine

        Raises:
            ScopeViolation: If the caller may not issue fines
            NotFoundError: If the vehicle or linked tow does not exist
        """
        caller = self._caller()
        rule_for(caller.role, Table.FINES, Action.CREATE)
        await self._get(caller, Table.VEHICLES, data.vehicle_id)
        if data.tow_id:
            await self._get(caller, Table.TOWS, data.tow_id)

        issued_at = as_utc(now) if now else utcnow()
        payload = {
            "vehicle_id": data.vehicle_id,
            "tow_id": data.tow_id,
            "amount": data.amount,
            "description": data.description,
            "issue_date": issued_at,
            "due_date": issued_at + timedelta(days=self.due_days),
            "status": FineStatus.UNPAID.value,
            "created_by": caller.user_id,
        }
        fine = await self._create(caller, Table.FINES, payload)
        LOGGER.info(
            f"Issued fine {fine.id} for vehicle {data.vehicle_id}",
            extra={"user_id": caller.user_id, "tow_id": data.tow_id},
        )
        return fine

    async def list_fines(
        self,
        vehicle_id: Optional[str] = None,
        display_status: Optional[FineDisplayStatus] = None,
        now: Optional[datetime] = None,
    ) -> List[Fine]:
        """List fines in scope, newest first.

        ``display_status`` filters on the derived status, so ``overdue``
        selects unpaid fines whose due date has passed at ``now``.
        """
        caller = self._caller()
        filters = []
        if vehicle_id:
            filters.append(Filter.eq("vehicle_id", vehicle_id))
        if display_status == FineDisplayStatus.PAID:
            filters.append(Filter.eq("status", FineStatus.PAID.value))
        elif display_status is not None:
            filters.append(Filter.in_("status", OPEN_STATUS_VALUES))

        fines = await self._find(
            caller, Table.FINES, filters, order=[Order("issue_date", ascending=False)]
        )
        if display_status is None or display_status == FineDisplayStatus.PAID:
            return fines
        return [fine for fine in fines if fine.display_status(now) == display_status]

    async def list_issued_fines(self, limit: Optional[int] = None) -> List[Fine]:
        """Fines the caller issued, newest first."""
        caller = self._caller()
        return await self._find(
            caller,
            Table.FINES,
            [Filter.eq("created_by", caller.user_id)],
            order=[Order("issue_date", ascending=False)],
            limit=limit,
        )

    async def get_fine(self, fine_id: str) -> Fine:
        return await self._get(self._caller(), Table.FINES, fine_id)

    async def pay_fine(self, fine_id: str, user_id: str, now: Optional[datetime] = None) -> Fine:
        """Pay one of the caller's fines.

        The status, payment date and transaction id are written in a single
        update that only matches while the fine is still open.

        Args:
            fine_id: Fine to pay
            user_id: Paying user, must be the signed-in owner
            now: Payment time, defaults to the current time

        Returns:
            The paid fine

        Raises:
            ScopeViolation: If ``user_id`` is not the caller or the caller may not pay fines
            NotFoundError: If the fine is not on one of the caller's vehicles
            FineAlreadyPaidError: If the fine is already paid
        """
        caller = self._caller()
        self._require_self(caller, user_id)
        scope = await self._scope(caller, Table.FINES, Action.UPDATE)

        fine = await self._get(caller, Table.FINES, fine_id)
        if fine.status == FineStatus.PAID:
            raise FineAlreadyPaidError(f"Fine {fine_id} is already paid")

        paid_at = as_utc(now) if now else utcnow()
        paid = await self.fines.mark_paid(fine_id, paid_at, generate_transaction_id(), scope.filters)
        if paid is None:
            # Paid by someone else between the read and the update
            raise FineAlreadyPaidError(f"Fine {fine_id} is already paid")
        scope.check([paid])
        LOGGER.info(
            f"Fine {fine_id} paid",
            extra={"user_id": caller.user_id, "transaction_id": paid.transaction_id},
        )
        return paid
