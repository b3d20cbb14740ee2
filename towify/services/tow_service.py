"""Tow recording and status workflows."""

from typing import List, Optional

from towify.core.exceptions import AppError, PartialWriteFailure
from towify.core.scope import Action, Table, rule_for
from towify.core.transitions import (
    LIFECYCLE_NOTIFICATION_TYPE,
    lifecycle_update,
    request_transition,
)
from towify.database.table_client import Filter, Order, TableClient
from towify.schemas.fine import FineCreate
from towify.schemas.notification import Notification
from towify.schemas.results import TowRecordResult
from towify.schemas.tow import RequestStatus, Tow, TowCreate, TowStatus
from towify.services.fine_service import FineService
from towify.services.scoped_service import Caller, ScopedService
from towify.services.session_service import SessionStore
from towify.services.vehicle_service import VehicleService
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)

_REQUEST_MESSAGES = {
    RequestStatus.ACCEPTED: (
        "Tow Request Accepted",
        "Your tow request for vehicle {plate} has been accepted.",
    ),
    RequestStatus.COMPLETED: (
        "Tow Completed",
        "The tow for your vehicle {plate} has been completed.",
    ),
}


class TowService(ScopedService):
    """Tows visible to the caller.

    Owners read the tows of their own vehicles. Staff record tows and drive
    both status workflows; officers read every tow.
    """

    def __init__(
        self,
        session_store: SessionStore,
        tables: TableClient,
        vehicle_service: Optional[VehicleService] = None,
        fine_service: Optional[FineService] = None,
    ):
        """Initialize the service.

        Args:
            session_store: Store holding the current session
            tables: Backend table client
            vehicle_service: Used for plate search and unknown vehicle registration
            fine_service: Used for the optional fine issued with a tow
        """
        super().__init__(session_store, tables)
        self.vehicle_service = vehicle_service or VehicleService(session_store, tables)
        self.fine_service = fine_service or FineService(session_store, tables)

    async def list_tows(
        self,
        vehicle_id: Optional[str] = None,
        request_status: Optional[RequestStatus] = None,
        status: Optional[TowStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Tow]:
        """List tows in scope, newest first."""
        caller = self._caller()
        filters = []
        if vehicle_id:
            filters.append(Filter.eq("vehicle_id", vehicle_id))
        if request_status is not None:
            filters.append(Filter.eq("request_status", request_status.value))
        if status is not None:
            filters.append(Filter.eq("status", status.value))
        return await self._find(
            caller, Table.TOWS, filters, order=[Order("tow_date", ascending=False)], limit=limit
        )

    async def get_tow(self, tow_id: str) -> Tow:
        return await self._get(self._caller(), Table.TOWS, tow_id)

    async def record_tow(self, data: TowCreate) -> TowRecordResult:
        """Record a tow, registering the vehicle and issuing a fine as needed.

        The steps run in order as independent writes: find the vehicle by
        plate (registering an unowned one if nothing matches), insert the tow,
        issue the fine if requested, then notify the vehicle's owner if it has
        one. Nothing is rolled back when a later step fails.

        Raises:
            ScopeViolation: If the caller may not record tows (or issue the fine)
            PartialWriteFailure: If a step failed after an earlier one committed
        """
        caller = self._caller()
        rule_for(caller.role, Table.TOWS, Action.CREATE)
        if data.issues_fine:
            rule_for(caller.role, Table.FINES, Action.CREATE)

        search = await self.vehicle_service.search_vehicle_by_plate(data.license_plate)
        vehicle = search.vehicle
        vehicle_created = False
        if vehicle is None:
            vehicle = await self.vehicle_service.register_unknown_vehicle(
                data.license_plate,
                make=data.make,
                model=data.model,
                color=data.color,
                registered_name=data.registered_name,
            )
            vehicle_created = True

        completed = {"vehicle": vehicle}
        payload = {
            "vehicle_id": vehicle.id,
            "license_plate": data.license_plate,
            "location": data.location,
            "reason": data.reason,
            "tow_date": data.tow_date,
            "notes": data.notes,
            "status": TowStatus.ACTIVE.value,
            "request_status": RequestStatus.ACCEPTED.value,
            "created_by": caller.user_id,
            "assigned_to": caller.user_id,
        }
        try:
            tow = await self._create(caller, Table.TOWS, payload)
        except AppError as e:
            if not vehicle_created:
                raise
            raise self._partial_failure("tow", completed, e) from e
        completed["tow"] = tow

        fine = None
        if data.issues_fine:
            try:
                fine = await self.fine_service.issue_fine(
                    FineCreate(
                        vehicle_id=vehicle.id,
                        amount=data.fine_amount,
                        description=data.fine_description,
                        tow_id=tow.id,
                    )
                )
            except AppError as e:
                raise self._partial_failure("fine", completed, e) from e
            completed["fine"] = fine

        notification = None
        if vehicle.owner_id:
            try:
                notification = await self._notify(
                    caller,
                    vehicle.owner_id,
                    "tow",
                    "Vehicle Towed",
                    f"Your vehicle ({data.license_plate}) has been towed from {data.location}",
                    related_id=tow.id,
                )
            except AppError as e:
                raise self._partial_failure("notification", completed, e) from e

        LOGGER.info(
            f"Recorded tow {tow.id} for plate {data.license_plate}",
            extra={"vehicle_created": vehicle_created, "fine_id": fine.id if fine else None},
        )
        return TowRecordResult(
            tow=tow,
            vehicle=vehicle,
            vehicle_created=vehicle_created,
            fine=fine,
            notification=notification,
            warning=search.warning,
        )

    def _partial_failure(self, step: str, completed: dict, error: AppError) -> PartialWriteFailure:
        LOGGER.error(
            f"Tow recording failed at step '{step}' after {', '.join(completed)} committed: {error}"
        )
        return PartialWriteFailure(
            f"Recording the tow failed at step '{step}': {error}",
            step=step,
            completed=dict(completed),
            original_error=error,
        )

    async def _notify_owner(
        self,
        caller: Caller,
        tow: Tow,
        notification_type: str,
        title: str,
        message: str,
    ) -> Optional[Notification]:
        vehicles = await self._find(caller, Table.VEHICLES, [Filter.eq("id", tow.vehicle_id)], limit=1)
        if not vehicles or not vehicles[0].owner_id:
            return None
        try:
            return await self._notify(
                caller, vehicles[0].owner_id, notification_type, title, message, related_id=tow.id
            )
        except AppError as e:
            LOGGER.error(f"Owner notification for tow {tow.id} failed: {e}")
            raise PartialWriteFailure(
                f"Tow {tow.id} updated but the owner could not be notified: {e}",
                step="notification",
                completed={"tow": tow},
                original_error=e,
            ) from e

    async def update_request_status(
        self,
        tow_id: str,
        new_status: RequestStatus,
        assign_to_me: bool = False,
    ) -> Tow:
        """Move a tow request through the intake workflow.

        The lifecycle status written alongside is fixed by the request
        transition table. The vehicle's owner is notified when a request is
        accepted or completed.

        Raises:
            InvalidTransitionError: If the request may not move to ``new_status``
            PartialWriteFailure: If the tow was updated but the notification failed
        """
        caller = self._caller()
        rule_for(caller.role, Table.TOWS, Action.UPDATE)
        tow = await self._get(caller, Table.TOWS, tow_id)
        transition = request_transition(tow.request_status, new_status)

        values = {"request_status": new_status.value, "status": transition.lifecycle.value}
        if assign_to_me and new_status == RequestStatus.ACCEPTED:
            values["assigned_to"] = caller.user_id
        updated = await self._update(caller, Table.TOWS, tow_id, values)

        if transition.notification_type:
            title, message = _REQUEST_MESSAGES[new_status]
            await self._notify_owner(
                caller,
                updated,
                transition.notification_type,
                title,
                message.format(plate=updated.license_plate),
            )
        return updated

    async def update_lifecycle_status(self, tow_id: str, new_status: TowStatus) -> Tow:
        """Change a tow's lifecycle status and notify the vehicle's owner.

        Completing a tow also completes its request.

        Raises:
            InvalidTransitionError: If the tow may not move to ``new_status``
            PartialWriteFailure: If the tow was updated but the notification failed
        """
        caller = self._caller()
        rule_for(caller.role, Table.TOWS, Action.UPDATE)
        tow = await self._get(caller, Table.TOWS, tow_id)
        request_status = lifecycle_update(tow.status, new_status)

        values = {"status": new_status.value}
        if request_status is not None:
            values["request_status"] = request_status.value
        updated = await self._update(caller, Table.TOWS, tow_id, values)

        await self._notify_owner(
            caller,
            updated,
            LIFECYCLE_NOTIFICATION_TYPE,
            f"Tow {new_status.value.capitalize()}",
            f"The status of your vehicle ({updated.license_plate}) tow has been updated to {new_status.value}.",
        )
        return updated
