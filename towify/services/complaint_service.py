"""Complaint submission and review."""

from datetime import datetime
from typing import List, Optional

from towify.core.exceptions import AppError, NotFoundError, PartialWriteFailure, ValidationError
from towify.core.scope import Action, Table, rule_for
from towify.core.transitions import check_complaint_transition
from towify.database.table_client import Filter, Order
from towify.schemas.complaint import Complaint, ComplaintCreate, ComplaintStatus
from towify.services.scoped_service import ScopedService
from towify.utils.logging import get_logger
from towify.utils.time_utils import as_utc, utcnow

LOGGER = get_logger(__name__)

COMPLAINT_NOTIFICATION_TYPE = "complaint_update"


class ComplaintService(ScopedService):
    """Owners submit complaints; staff and officers review them."""

    async def create_complaint(self, data: ComplaintCreate) -> Complaint:
        """Submit a complaint as the caller.

        Raises:
            NotFoundError: If the referenced vehicle is not one of the caller's
        """
        caller = self._caller()
        rule_for(caller.role, Table.COMPLAINTS, Action.CREATE)
        if data.vehicle_id and data.vehicle_id not in await self._owned_vehicle_ids(caller):
            raise NotFoundError(f"No vehicles row {data.vehicle_id}")

        payload = data.model_dump()
        payload["user_id"] = caller.user_id
        payload["status"] = ComplaintStatus.PENDING.value
        complaint = await self._create(caller, Table.COMPLAINTS, payload)
        LOGGER.info(f"Complaint {complaint.id} submitted", extra={"user_id": caller.user_id})
        return complaint

    async def list_my_complaints(self) -> List[Complaint]:
        caller = self._caller()
        return await self._find(
            caller,
            Table.COMPLAINTS,
            [Filter.eq("user_id", caller.user_id)],
            order=[Order("created_at", ascending=False)],
        )

    async def list_complaints(self, status: Optional[ComplaintStatus] = None) -> List[Complaint]:
        """List complaints in scope, newest first."""
        caller = self._caller()
        filters = [Filter.eq("status", status.value)] if status is not None else []
        return await self._find(
            caller, Table.COMPLAINTS, filters, order=[Order("created_at", ascending=False)]
        )

    async def get_complaint(self, complaint_id: str) -> Complaint:
        return await self._get(self._caller(), Table.COMPLAINTS, complaint_id)

    async def update_complaint_status(
        self,
        complaint_id: str,
        new_status: ComplaintStatus,
        response: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Complaint:
        """Review a complaint and notify its submitter.

        Closing a complaint (resolved or rejected) requires a response and
        records who closed it and when, in the same update.

        Raises:
            InvalidTransitionError: If the complaint may not move to ``new_status``
            ValidationError: If a closing status has no response
            PartialWriteFailure: If the complaint was updated but the notification failed
        """
        caller = self._caller()
        rule_for(caller.role, Table.COMPLAINTS, Action.UPDATE)
        complaint = await self._get(caller, Table.COMPLAINTS, complaint_id)
        check_complaint_transition(complaint.status, new_status)

        response = (response or "").strip()
        values = {"status": new_status.value}
        if response:
            values["response"] = response
        if new_status.is_closed:
            if not response:
                raise ValidationError("Please enter a response before closing the complaint")
            values["resolved_by"] = caller.user_id
            values["resolved_at"] = as_utc(now) if now else utcnow()
        updated = await self._update(caller, Table.COMPLAINTS, complaint_id, values)

        if new_status == ComplaintStatus.RESOLVED:
            title = "Complaint Resolved"
            message = f'Your complaint "{updated.subject}" has been resolved.'
        else:
            title = "Complaint Updated"
            label = new_status.value.replace("_", " ")
            message = f'Your complaint "{updated.subject}" has been updated to {label}.'
        try:
            await self._notify(
                caller, updated.user_id, COMPLAINT_NOTIFICATION_TYPE, title, message, related_id=complaint_id
            )
        except AppError as e:
            LOGGER.error(f"Submitter notification for complaint {complaint_id} failed: {e}")
            raise PartialWriteFailure(
                f"Complaint {complaint_id} updated but the submitter could not be notified: {e}",
                step="notification",
                completed={"complaint": updated},
                original_error=e,
            ) from e
        return updated
