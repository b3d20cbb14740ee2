"""Maps the current session to the screen the user belongs on."""

from typing import Callable, Dict, Optional

from towify.core.exceptions import ScopeViolation
from towify.schemas.session import Destination, Role, Session, SessionState
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)

DASHBOARDS: Dict[Role, Destination] = {
    Role.OWNER: Destination.OWNER_DASHBOARD,
    Role.STAFF: Destination.STAFF_DASHBOARD,
    Role.OFFICER: Destination.OFFICER_DASHBOARD,
}

Navigate = Callable[[Destination], None]


def resolve_destination(session: Session) -> Destination:
    """Return where a session belongs.

    Pure and total: every session maps to exactly one destination, and only a
    resolved role ever maps to a dashboard. A signed-in user whose role is
    unknown (no profile row, unrecognized value or failed lookup) stays at
    login.
    """
    if session.state == SessionState.RESOLVING:
        return Destination.SPLASH_HOLD
    if session.state == SessionState.UNAUTHENTICATED or session.role is None:
        return Destination.LOGIN
    return DASHBOARDS[session.role]


class RoleRouter:
    """Drives navigation from session changes.

    Navigation is emitted through the injected ``navigate`` callback, at most
    once per distinct destination, and never while the session is resolving.
    """

    def __init__(self, navigate: Optional[Navigate] = None):
        """Initialize the router.

        Args:
            navigate: Callback that performs the actual screen change
        """
        self._navigate = navigate
        self._current: Optional[Destination] = None

    @property
    def current_destination(self) -> Optional[Destination]:
        """The last destination navigated to, None before the first navigation."""
        return self._current

    def _go(self, destination: Destination) -> None:
        if destination == self._current:
            return
        LOGGER.info(f"Navigating to {destination.value}")
        self._current = destination
        if self._navigate is not None:
            self._navigate(destination)

    def on_session_change(self, session: Session) -> Destination:
        """Session store listener. Returns the destination for ``session``."""
        destination = resolve_destination(session)
        if destination != Destination.SPLASH_HOLD:
            self._go(destination)
        return destination

    def navigate_to_login(self) -> None:
        self._go(Destination.LOGIN)

    def can_access(self, session: Session, destination: Destination) -> bool:
        """Login is always reachable; a dashboard only for the matching role."""
        if destination == Destination.LOGIN:
            return True
        if destination == Destination.SPLASH_HOLD:
            return session.state == SessionState.RESOLVING
        return destination == resolve_destination(session)

    def require_access(self, session: Session, destination: Destination) -> None:
        """Guard a screen.

        Raises:
            ScopeViolation: If the session may not open ``destination``
        """
        if not self.can_access(session, destination):
            LOGGER.warning(
                f"Blocked navigation to {destination.value}",
                extra={"user_id": session.user_id},
            )
            raise ScopeViolation(f"Session may not access {destination.value}")
