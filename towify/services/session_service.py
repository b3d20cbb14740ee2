"""Session resolution: who is signed in and with which role.

``SessionResolver`` is the only writer of the ``SessionStore``. It subscribes
once to the auth service's credential channel and, on every credential
change, re-resolves the role from the ``profiles`` table. Role lookups that
finish after a newer credential change are discarded.
"""

from typing import Callable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from towify.core.events import Subscription
from towify.core.exceptions import (
    APIClientError,
    AppError,
    PartialWriteFailure,
    RoleLookupError,
    ValidationError,
)
from towify.repositories.profile_repository import ProfileRepository
from towify.schemas.auth import AuthEvent, Credential, Profile, SignInRequest, SignUpRequest
from towify.schemas.session import Role, Session
from towify.services.auth_service import AuthService
from towify.services.role_router import RoleRouter
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)

SessionListener = Callable[[Session], None]


class SessionStore:
    """Holds the current session value.

    Listeners are called synchronously, in subscription order, and only when
    the value actually changes.
    """

    def __init__(self, initial: Optional[Session] = None):
        self._session = initial or Session.initial()
        self._listeners: List[SessionListener] = []

    @property
    def current(self) -> Session:
        return self._session

    def set(self, session: Session) -> None:
        if session == self._session:
            return
        LOGGER.debug(f"Session {self._session.state.value} -> {session.state.value}")
        self._session = session
        for listener in list(self._listeners):
            listener(session)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class SessionResolver:
    """Owns the session lifecycle.

    States: uninitialized, resolving, authenticated (with a role or with
    none) and unauthenticated. The store starts out resolving, so the router
    holds on the splash screen until the first resolution completes.
    """

    def __init__(
        self,
        auth: AuthService,
        profiles: ProfileRepository,
        store: Optional[SessionStore] = None,
        router: Optional[RoleRouter] = None,
    ):
        """Initialize the resolver.

        Args:
            auth: Auth service holding the credential
            profiles: Repository used for role lookups
            store: Session store to write to
            router: Router told to show login on sign-out
        """
        self.auth = auth
        self.profiles = profiles
        self.store = store or SessionStore()
        self.router = router
        self._subscription: Optional[Subscription] = None
        self._generation = 0

    @property
    def started(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def __aenter__(self) -> "SessionResolver":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def start(self) -> Session:
        """Subscribe to credential changes and resolve the initial session.

        Calling ``start`` on a started resolver does nothing.
        """
        if self.started:
            return self.store.current
        self._subscription = self.auth.on_credential_change(self._on_credential_change)
        LOGGER.info("Session resolver started")
        try:
            credential = await self.auth.get_current_credential()
        except APIClientError:
            self._generation += 1
            self.store.set(Session.unauthenticated())
            raise
        return await self._resolve(credential)

    def close(self) -> None:
        """Release the credential subscription. Safe to call more than once."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
            LOGGER.info("Session resolver closed")

    def get_current_session(self) -> Session:
        return self.store.current

    async def refresh_role(self, user_id: str) -> Optional[Role]:
        """Look up a user's role.

        Returns:
            The role, or None if there is no profile row or its value is not a
            known role

        Raises:
            RoleLookupError: If the lookup itself failed
        """
        try:
            value = await self.profiles.get_role_value(user_id)
        except AppError as e:
            LOGGER.error(f"Role lookup failed for user {user_id}: {e}")
            raise RoleLookupError(
                f"Could not load role for user {user_id}", user_id=user_id, original_error=e
            ) from e

        role = Role.parse(value)
        if value is None:
            LOGGER.warning(f"No profile role for user {user_id}")
        elif role is None:
            LOGGER.warning(f"Unrecognized role '{value}' for user {user_id}")
        return role

    async def _resolve(self, credential: Optional[Credential]) -> Session:
        self._generation += 1
        generation = self._generation

        if credential is None:
            self.store.set(Session.unauthenticated())
            return self.store.current

        self.store.set(Session.resolving_for(credential.user_id, credential.email))
        role_error = None
        try:
            role = await self.refresh_role(credential.user_id)
        except RoleLookupError as e:
            role = None
            role_error = str(e)

        if generation != self._generation:
            LOGGER.debug(f"Discarding stale role lookup for user {credential.user_id}")
            return self.store.current

        session = Session.authenticated(
            credential.user_id, role, email=credential.email, role_error=role_error
        )
        self.store.set(session)
        LOGGER.info(
            f"Session resolved for user {credential.user_id}",
            extra={"role": role.value if role else None},
        )
        return session

    async def _on_credential_change(self, event: AuthEvent, credential: Optional[Credential]) -> None:
        LOGGER.debug(f"Credential change: {event.value}")
        if event == AuthEvent.SIGNED_OUT:
            credential = None
        await self._resolve(credential)

    async def sign_in(self, email: str, password: str) -> Session:
        """Sign in and resolve the role.

        Raises:
            ValidationError: If the email or password is malformed
            CredentialError: If the auth service rejects the credentials
            RoleLookupError: If signed in but the role could not be loaded; the
                session stays authenticated without a role
        """
        try:
            request = SignInRequest(email=email, password=password)
        except PydanticValidationError as e:
            raise ValidationError(
                "Please enter a valid email and a password of at least 6 characters",
                original_error=e,
            ) from e

        credential = await self.auth.sign_in_with_password(request.email, request.password)
        session = self.store.current
        if not self.started or session.user_id != credential.user_id or session.resolving:
            session = await self._resolve(credential)

        if session.role_error:
            raise RoleLookupError(session.role_error, user_id=credential.user_id)
        return session

    async def sign_up(self, request: SignUpRequest) -> Optional[Credential]:
        """Create an account and its profile row.

        Returns:
            The credential when a session was issued, None while email
            confirmation is pending

        Raises:
            CredentialError: If the auth service rejects the sign-up
            PartialWriteFailure: If the account was created but the profile
                row could not be written
        """
        result = await self.auth.sign_up(request)
        if result.user_id is None:
            return result.credential

        profile = Profile(
            id=result.user_id,
            email=result.email or request.email,
            full_name=request.full_name,
            role=request.role.value,
        )
        try:
            await self.profiles.create(profile)
        except AppError as e:
            LOGGER.error(f"Profile creation failed for new user {result.user_id}: {e}")
            raise PartialWriteFailure(
                f"Account created but profile could not be saved: {e}",
                step="profile",
                completed={"user_id": result.user_id, "credential": result.credential},
                original_error=e,
            ) from e

        # The sign-in event may have looked up the role before the profile existed
        if result.credential is not None and self.store.current.user_id == result.user_id:
            await self._resolve(result.credential)
        return result.credential

    async def sign_out(self) -> None:
        """Sign out and return to login. Safe to call when already signed out."""
        await self.auth.sign_out()
        self._generation += 1
        self.store.set(Session.unauthenticated())
        if self.router is not None:
            self.router.navigate_to_login()
