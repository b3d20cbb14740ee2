"""Row scope rules per role, table and action.

``SCOPE_RULES`` is the single source of truth for what each role may do to
each table. A missing entry means the action is not permitted. Every scoped
service builds its filters from these rules and re-checks the rows that come
back; the backend's row-level security sits underneath as a second layer and
is never relied on alone.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence, Tuple

from towify.core.exceptions import ScopeViolation
from towify.database.table_client import Filter
from towify.schemas.session import Role
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Table(str, Enum):
    VEHICLES = "vehicles"
    TOWS = "tows"
    FINES = "fines"
    COMPLAINTS = "complaints"
    NOTIFICATIONS = "notifications"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ScopeKind(str, Enum):
    ALL = "all"
    SELF = "self"  # row[column] == caller
    OWNED_VEHICLE = "owned_vehicle"  # row.vehicle_id is one of the caller's vehicles
    UNOWNED = "unowned"  # create only: owner_id must be null


@dataclass(frozen=True)
class ScopeRule:
    kind: ScopeKind
    column: Optional[str] = None


_ALL = ScopeRule(ScopeKind.ALL)
_OWN_VEHICLE_ROW = ScopeRule(ScopeKind.SELF, "owner_id")
_OWNED_VEHICLE = ScopeRule(ScopeKind.OWNED_VEHICLE, "vehicle_id")
_OWN_USER_ROW = ScopeRule(ScopeKind.SELF, "user_id")
_UNOWNED_VEHICLE = ScopeRule(ScopeKind.UNOWNED, "owner_id")


SCOPE_RULES: Dict[Tuple[Role, Table, Action], ScopeRule] = {
    # vehicles
    (Role.OWNER, Table.VEHICLES, Action.READ): _OWN_VEHICLE_ROW,
    (Role.OWNER, Table.VEHICLES, Action.CREATE): _OWN_VEHICLE_ROW,
    (Role.OWNER, Table.VEHICLES, Action.UPDATE): _OWN_VEHICLE_ROW,
    (Role.OWNER, Table.VEHICLES, Action.DELETE): _OWN_VEHICLE_ROW,
    (Role.STAFF, Table.VEHICLES, Action.READ): _ALL,
    (Role.STAFF, Table.VEHICLES, Action.CREATE): _UNOWNED_VEHICLE,
    (Role.OFFICER, Table.VEHICLES, Action.READ): _ALL,
    # tows
    (Role.OWNER, Table.TOWS, Action.READ): _OWNED_VEHICLE,
    (Role.STAFF, Table.TOWS, Action.READ): _ALL,
    (Role.STAFF, Table.TOWS, Action.CREATE): _ALL,
    (Role.STAFF, Table.TOWS, Action.UPDATE): _ALL,
    (Role.OFFICER, Table.TOWS, Action.READ): _ALL,
    # fines
    (Role.OWNER, Table.FINES, Action.READ): _OWNED_VEHICLE,
    (Role.OWNER, Table.FINES, Action.UPDATE): _OWNED_VEHICLE,
    (Role.STAFF, Table.FINES, Action.CREATE): _ALL,
    (Role.OFFICER, Table.FINES, Action.CREATE): _ALL,
    (Role.OFFICER, Table.FINES, Action.READ): _ALL,
    # complaints
    (Role.OWNER, Table.COMPLAINTS, Action.CREATE): _OWN_USER_ROW,
    (Role.OWNER, Table.COMPLAINTS, Action.READ): _OWN_USER_ROW,
    (Role.STAFF, Table.COMPLAINTS, Action.READ): _ALL,
    (Role.STAFF, Table.COMPLAINTS, Action.UPDATE): _ALL,
    (Role.OFFICER, Table.COMPLAINTS, Action.READ): _ALL,
    (Role.OFFICER, Table.COMPLAINTS, Action.UPDATE): _ALL,
    # notifications
    (Role.OWNER, Table.NOTIFICATIONS, Action.READ): _OWN_USER_ROW,
    (Role.OWNER, Table.NOTIFICATIONS, Action.UPDATE): _OWN_USER_ROW,
    (Role.STAFF, Table.NOTIFICATIONS, Action.READ): _OWN_USER_ROW,
    (Role.STAFF, Table.NOTIFICATIONS, Action.UPDATE): _OWN_USER_ROW,
    (Role.STAFF, Table.NOTIFICATIONS, Action.CREATE): _ALL,
    (Role.OFFICER, Table.NOTIFICATIONS, Action.READ): _OWN_USER_ROW,
    (Role.OFFICER, Table.NOTIFICATIONS, Action.UPDATE): _OWN_USER_ROW,
    (Role.OFFICER, Table.NOTIFICATIONS, Action.CREATE): _ALL,
}


def is_permitted(role: Role, table: Table, action: Action) -> bool:
    return (role, table, action) in SCOPE_RULES


def rule_for(role: Role, table: Table, action: Action) -> ScopeRule:
    """Look up the scope rule for an action.

    Raises:
        ScopeViolation: If the role may not perform the action on the table
    """
    rule = SCOPE_RULES.get((role, table, action))
    if rule is None:
        LOGGER.warning(f"Denied {action.value} on {table.value} for role {role.value}")
        raise ScopeViolation(f"Role '{role.value}' may not {action.value} {table.value}")
    return rule


def scope_filters(
    rule: ScopeRule,
    user_id: str,
    owned_vehicle_ids: Optional[Collection[str]] = None,
) -> List[Filter]:
    """Build the filters that confine a query to the rule's rows.

    For ``OWNED_VEHICLE`` the caller must pass the ids of its vehicles; an
    empty collection yields an ``in`` filter that matches nothing, and callers
    usually short-circuit before querying.
    """
    if rule.kind == ScopeKind.ALL:
        return []
    if rule.kind == ScopeKind.SELF:
        return [Filter.eq(rule.column, user_id)]
    if rule.kind == ScopeKind.OWNED_VEHICLE:
        if owned_vehicle_ids is None:
            raise ScopeViolation("Owned vehicle ids are required to scope this query")
        return [Filter.in_(rule.column, sorted(owned_vehicle_ids))]
    raise ScopeViolation(f"Scope '{rule.kind.value}' does not apply to queries")


def _column_value(row: Any, column: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(column)
    return getattr(row, column, None)


def row_in_scope(
    rule: ScopeRule,
    user_id: str,
    row: Any,
    owned_vehicle_ids: Optional[Collection[str]] = None,
) -> bool:
    """Check one row (a mapping or a model) against the rule."""
    if rule.kind == ScopeKind.ALL:
        return True
    value = _column_value(row, rule.column)
    if rule.kind == ScopeKind.SELF:
        return value == user_id
    if rule.kind == ScopeKind.OWNED_VEHICLE:
        return owned_vehicle_ids is not None and value in owned_vehicle_ids
    if rule.kind == ScopeKind.UNOWNED:
        return value is None
    return False


def check_rows(
    rule: ScopeRule,
    user_id: str,
    rows: Sequence[Any],
    owned_vehicle_ids: Optional[Collection[str]] = None,
    table: Optional[Table] = None,
) -> Sequence[Any]:
    """Verify every returned row satisfies the rule.

    Raises:
        ScopeViolation: If any row falls outside the caller's scope
    """
    for row in rows:
        if not row_in_scope(rule, user_id, row, owned_vehicle_ids):
            name = table.value if table else "table"
            LOGGER.error(
                f"Row {_column_value(row, 'id')} from {name} is outside scope {rule.kind.value}",
                extra={"user_id": user_id},
            )
            raise ScopeViolation(f"Query on {name} returned a row outside the caller's scope")
    return rows


def check_payload(rule: ScopeRule, user_id: str, payload: Mapping[str, Any]) -> None:
    """Verify a create payload targets rows the caller may create.

    Raises:
        ScopeViolation: If the payload is addressed outside the caller's scope
    """
    if rule.kind == ScopeKind.SELF and payload.get(rule.column) != user_id:
        raise ScopeViolation(f"{rule.column} must be the caller's own id")
    if rule.kind == ScopeKind.UNOWNED and payload.get(rule.column) is not None:
        raise ScopeViolation(f"{rule.column} must be empty for this role")
