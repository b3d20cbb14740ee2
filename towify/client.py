"""Composition root wiring the auth, session, routing and data services."""

from typing import Optional

import httpx

from towify.core.config import Settings
from towify.core.config import settings as default_settings
from towify.core.jwt import TokenDecoder
from towify.database.postgrest_client import PostgrestClient
from towify.database.table_client import TableClient
from towify.repositories.profile_repository import ProfileRepository
from towify.schemas.auth import Credential, SignUpRequest
from towify.schemas.session import Destination, Session
from towify.services.auth_service import AuthService
from towify.services.complaint_service import ComplaintService
from towify.services.dashboard_service import DashboardService
from towify.services.fine_service import FineService
from towify.services.notification_service import NotificationService
from towify.services.role_router import Navigate, RoleRouter, resolve_destination
from towify.services.session_service import SessionResolver, SessionStore
from towify.services.tow_service import TowService
from towify.services.vehicle_service import VehicleService
from towify.utils.logging import get_logger, set_log_level

LOGGER = get_logger(__name__)


class TowifyClient:
    """One signed-in application instance.

    Usage::

        async with TowifyClient(navigate=show_screen) as app:
            await app.sign_in("staff@example.com", "secret1")
            result = await app.tows.record_tow(TowCreate(...))
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        navigate: Optional[Navigate] = None,
        auth: Optional[AuthService] = None,
        tables: Optional[TableClient] = None,
    ):
        """Wire the client.

        Args:
            settings: Application settings, the module-level settings by default
            http_client: Shared HTTP client; one is created and owned if omitted
            navigate: Callback performing screen changes
            auth: Auth service to use instead of the GoTrue one
            tables: Table client to use instead of the PostgREST one
        """
        self.settings = settings or default_settings
        set_log_level(self.settings.log_level)

        self._owns_http_client = http_client is None and (auth is None or tables is None)
        self.http_client = http_client
        if self._owns_http_client:
            self.http_client = httpx.AsyncClient(timeout=self.settings.http_timeout)

        self.auth = auth or AuthService(
            supabase_url=self.settings.supabase_url,
            anon_key=self.settings.supabase_anon_key,
            http_client=self.http_client,
            timeout=self.settings.http_timeout,
            refresh_margin=self.settings.token_refresh_margin,
            token_decoder=TokenDecoder(
                supabase_url=self.settings.supabase_url,
                jwt_secret=self.settings.supabase_jwt_secret,
            ),
        )
        self.tables = tables or PostgrestClient(
            supabase_url=self.settings.supabase_url,
            anon_key=self.settings.supabase_anon_key,
            token_provider=lambda: self.auth.access_token,
            http_client=self.http_client,
            timeout=self.settings.http_timeout,
        )

        self.store = SessionStore()
        self.router = RoleRouter(navigate)
        self.store.subscribe(self.router.on_session_change)
        self.resolver = SessionResolver(
            self.auth, ProfileRepository(self.tables), store=self.store, router=self.router
        )

        self.vehicles = VehicleService(self.store, self.tables)
        self.fines = FineService(self.store, self.tables, due_days=self.settings.fine_due_days)
        self.tows = TowService(
            self.store, self.tables, vehicle_service=self.vehicles, fine_service=self.fines
        )
        self.complaints = ComplaintService(self.store, self.tables)
        self.notifications = NotificationService(self.store, self.tables)
        self.dashboard = DashboardService(self.store, self.tables)

    async def __aenter__(self) -> "TowifyClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> Session:
        return await self.resolver.start()

    async def close(self) -> None:
        """Release the auth subscription and the owned HTTP client."""
        self.resolver.close()
        if self._owns_http_client and self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
            self._owns_http_client = False
        LOGGER.debug("Client closed")

    def get_current_session(self) -> Session:
        return self.resolver.get_current_session()

    def resolve_destination(self) -> Destination:
        return resolve_destination(self.get_current_session())

    async def sign_in(self, email: str, password: str) -> Session:
        return await self.resolver.sign_in(email, password)

    async def sign_up(self, request: SignUpRequest) -> Optional[Credential]:
        return await self.resolver.sign_up(request)

    async def sign_out(self) -> None:
        await self.resolver.sign_out()

    async def restore_session(self, access_token: str, refresh_token: Optional[str] = None) -> Session:
        """Restore a persisted session and resolve its role."""
        await self.auth.restore_session(access_token, refresh_token)
        return self.get_current_session()
