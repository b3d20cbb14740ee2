"""Status transition tables for tows and complaints."""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from towify.core.exceptions import InvalidTransitionError
from towify.schemas.complaint import ComplaintStatus
from towify.schemas.tow import RequestStatus, TowStatus


@dataclass(frozen=True)
class RequestTransition:
    allowed_from: FrozenSet[RequestStatus]
    lifecycle: TowStatus
    notification_type: Optional[str] = None


# Staff intake workflow. Each target request status fixes the lifecycle status
# written alongside it.
REQUEST_TRANSITIONS: Dict[RequestStatus, RequestTransition] = {
    RequestStatus.ACCEPTED: RequestTransition(
        allowed_from=frozenset({RequestStatus.NEW}),
        lifecycle=TowStatus.ACTIVE,
        notification_type="tow_accepted",
    ),
    RequestStatus.REJECTED: RequestTransition(
        allowed_from=frozenset({RequestStatus.NEW, RequestStatus.ACCEPTED}),
        lifecycle=TowStatus.CANCELLED,
    ),
    RequestStatus.COMPLETED: RequestTransition(
        allowed_from=frozenset({RequestStatus.ACCEPTED}),
        lifecycle=TowStatus.COMPLETED,
        notification_type="tow_completed",
    ),
}

LIFECYCLE_TRANSITIONS: Dict[TowStatus, FrozenSet[TowStatus]] = {
    TowStatus.PENDING: frozenset({TowStatus.ACTIVE, TowStatus.CANCELLED}),
    TowStatus.ACTIVE: frozenset({TowStatus.COMPLETED, TowStatus.CANCELLED}),
    TowStatus.COMPLETED: frozenset(),
    TowStatus.CANCELLED: frozenset(),
}

LIFECYCLE_NOTIFICATION_TYPE = "tow_status"

COMPLAINT_TRANSITIONS: Dict[ComplaintStatus, FrozenSet[ComplaintStatus]] = {
    ComplaintStatus.PENDING: frozenset(
        {ComplaintStatus.IN_REVIEW, ComplaintStatus.RESOLVED, ComplaintStatus.REJECTED}
    ),
    ComplaintStatus.IN_REVIEW: frozenset({ComplaintStatus.RESOLVED, ComplaintStatus.REJECTED}),
    ComplaintStatus.RESOLVED: frozenset(),
    ComplaintStatus.REJECTED: frozenset(),
}


def request_transition(current: RequestStatus, target: RequestStatus) -> RequestTransition:
    """Validate a request status change and return what it implies.

    Raises:
        InvalidTransitionError: If the change is not allowed
    """
    transition = REQUEST_TRANSITIONS.get(target)
    if transition is None or current not in transition.allowed_from:
        raise InvalidTransitionError(
            f"Tow request cannot move from '{current.value}' to '{target.value}'"
        )
    return transition


def lifecycle_update(current: TowStatus, target: TowStatus) -> Optional[RequestStatus]:
    """Validate a lifecycle change.

    Returns:
        The request status to write alongside, or None to leave it unchanged

    Raises:
        InvalidTransitionError: If the change is not allowed
    """
    if target not in LIFECYCLE_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Tow cannot move from '{current.value}' to '{target.value}'"
        )
    if target == TowStatus.COMPLETED:
        return RequestStatus.COMPLETED
    return None


def check_complaint_transition(current: ComplaintStatus, target: ComplaintStatus) -> None:
    """Raises InvalidTransitionError if a complaint may not move to ``target``."""
    if target not in COMPLAINT_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Complaint cannot move from '{current.value}' to '{target.value}'"
        )
