"""Base class for services whose every query is scoped to the caller."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set

from towify.core.exceptions import NotFoundError, ScopeViolation
from towify.core.scope import (
    Action,
    ScopeKind,
    ScopeRule,
    Table,
    check_payload,
    check_rows,
    rule_for,
    scope_filters,
)
from towify.database.table_client import Filter, Order, TableClient
from towify.repositories.base_repository import BaseRepository
from towify.repositories.complaint_repository import ComplaintRepository
from towify.repositories.fine_repository import FineRepository
from towify.repositories.notification_repository import NotificationRepository
from towify.repositories.tow_repository import TowRepository
from towify.repositories.vehicle_repository import VehicleRepository
from towify.schemas.notification import Notification, NotificationCreate
from towify.schemas.session import Role, SessionState
from towify.services.session_service import SessionStore
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: Role


@dataclass(frozen=True)
class Scope:
    """A resolved scope rule together with the filters that enforce it."""

    caller: Caller
    table: Table
    rule: ScopeRule
    filters: List[Filter]
    owned_vehicle_ids: Optional[Set[str]] = None

    @property
    def empty(self) -> bool:
        """True when the scope provably matches no rows."""
        return self.owned_vehicle_ids is not None and not self.owned_vehicle_ids

    def check(self, rows: Sequence[Any]) -> Sequence[Any]:
        return check_rows(
            self.rule, self.caller.user_id, rows, self.owned_vehicle_ids, table=self.table
        )


class ScopedService:
    """Reads the caller from the session and scopes every query to it.

    The caller's identity is never taken from arguments: it is the user id and
    role of the current session. Every query is built from the scope rules and
    every returned row is re-checked against them.
    """

    def __init__(self, session_store: SessionStore, tables: TableClient):
        """Initialize the service.

        Args:
            session_store: Store holding the current session
            tables: Backend table client
        """
        self.session_store = session_store
        self.tables = tables
        self.vehicles = VehicleRepository(tables)
        self.tows = TowRepository(tables)
        self.fines = FineRepository(tables)
        self.complaints = ComplaintRepository(tables)
        self.notifications = NotificationRepository(tables)
        self._repositories: Dict[Table, BaseRepository] = {
            Table.VEHICLES: self.vehicles,
            Table.TOWS: self.tows,
            Table.FINES: self.fines,
            Table.COMPLAINTS: self.complaints,
            Table.NOTIFICATIONS: self.notifications,
        }

    def _caller(self) -> Caller:
        """The signed-in caller.

        Raises:
            ScopeViolation: If nobody is signed in with a resolved role
        """
        session = self.session_store.current
        if session.state != SessionState.AUTHENTICATED or session.role is None:
            raise ScopeViolation("No signed-in user with a resolved role")
        return Caller(user_id=session.user_id, role=session.role)

    def _require_self(self, caller: Caller, user_id: str) -> None:
        if user_id != caller.user_id:
            LOGGER.warning(
                f"Caller {caller.user_id} addressed another user's rows",
                extra={"target_user_id": user_id},
            )
            raise ScopeViolation("Operation is limited to the signed-in user's own rows")

    async def _owned_vehicle_ids(self, caller: Caller) -> Set[str]:
        vehicles = await self.vehicles.find([Filter.eq("owner_id", caller.user_id)])
        check_rows(
            ScopeRule(ScopeKind.SELF, "owner_id"), caller.user_id, vehicles, table=Table.VEHICLES
        )
        return {vehicle.id for vehicle in vehicles}

    async def _scope(self, caller: Caller, table: Table, action: Action) -> Scope:
        rule = rule_for(caller.role, table, action)
        owned = None
        if rule.kind == ScopeKind.OWNED_VEHICLE:
            owned = await self._owned_vehicle_ids(caller)
        filters = [] if rule.kind == ScopeKind.UNOWNED else scope_filters(rule, caller.user_id, owned)
        return Scope(caller, table, rule, filters, owned)

    async def _find(
        self,
        caller: Caller,
        table: Table,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> List[Any]:
        scope = await self._scope(caller, table, Action.READ)
        if scope.empty:
            return []
        rows = await self._repositories[table].find([*scope.filters, *filters], order=order, limit=limit)
        scope.check(rows)
        return rows

    async def _get(self, caller: Caller, table: Table, row_id: str) -> Any:
        """Fetch one row by id inside the caller's read scope.

        Raises:
            NotFoundError: If no such row is visible to the caller
        """
        rows = await self._find(caller, table, [Filter.eq("id", row_id)], limit=1)
        if not rows:
            raise NotFoundError(f"No {table.value} row {row_id}")
        return rows[0]

    async def _create(self, caller: Caller, table: Table, payload: Dict[str, Any]) -> Any:
        rule = rule_for(caller.role, table, Action.CREATE)
        check_payload(rule, caller.user_id, payload)
        return await self._repositories[table].create(payload)

    async def _update(
        self,
        caller: Caller,
        table: Table,
        row_id: str,
        values: Dict[str, Any],
        filters: Sequence[Filter] = (),
    ) -> Any:
        """Update one row by id inside the caller's update scope.

        Raises:
            NotFoundError: If no row matched
        """
        scope = await self._scope(caller, table, Action.UPDATE)
        if scope.empty:
            raise NotFoundError(f"No {table.value} row {row_id}")
        rows = await self._repositories[table].update(
            values, [Filter.eq("id", row_id), *scope.filters, *filters]
        )
        scope.check(rows)
        if not rows:
            raise NotFoundError(f"No {table.value} row {row_id}")
        LOGGER.info(f"Updated {table.value} row: {row_id}", extra={"user_id": caller.user_id})
        return rows[0]

    async def _notify(
        self,
        caller: Caller,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        related_id: Optional[str] = None,
    ) -> Notification:
        payload = NotificationCreate(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            related_id=related_id,
        )
        return await self._create(caller, Table.NOTIFICATIONS, payload.model_dump())
