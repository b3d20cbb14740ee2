"""Auth service for the Supabase GoTrue REST API."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from towify.core.config import settings
from towify.core.events import CredentialCallback, CredentialChannel, Subscription
from towify.core.exceptions import APIClientError, APITimeoutError, ConfigurationError, CredentialError
from towify.core.jwt import TokenDecoder
from towify.schemas.auth import AuthEvent, Credential, SignUpRequest, SignUpResult
from towify.utils.logging import get_logger
from towify.utils.time_utils import utcnow

LOGGER = get_logger(__name__)

# GoTrue answers these when the credential itself is rejected
_CREDENTIAL_STATUSES = {400, 401, 403, 422}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if body.get(key):
                return str(body[key])
    return response.text


def _parse_credential(data: Dict[str, Any]) -> Credential:
    """Build a credential from a GoTrue session payload."""
    user = data.get("user") or {}
    if data.get("expires_at"):
        expires_at = datetime.fromtimestamp(int(data["expires_at"]), tz=timezone.utc)
    elif data.get("expires_in"):
        expires_at = utcnow() + timedelta(seconds=int(data["expires_in"]))
    else:
        expires_at = None
    return Credential(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expires_at=expires_at,
        user_id=user["id"],
        email=user.get("email"),
        user_metadata=user.get("user_metadata") or {},
    )


class AuthService:
    """Holds the current credential and talks to ``{SUPABASE_URL}/auth/v1``.

    Every change to the held credential is published on the credential
    channel: ``SIGNED_IN`` after a sign-in, sign-up with an immediate session
    or a restored session, ``TOKEN_REFRESHED`` after a refresh and
    ``SIGNED_OUT`` once the credential is gone.
    """

    def __init__(
        self,
        supabase_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        refresh_margin: Optional[int] = None,
        token_decoder: Optional[TokenDecoder] = None,
        channel: Optional[CredentialChannel] = None,
    ):
        """Initialize the auth service.

        Args:
            supabase_url: Supabase project URL
            anon_key: Project anon (public) key
            http_client: Shared HTTP client; a short-lived one is used per call if omitted
            timeout: Request timeout in seconds
            refresh_margin: Seconds before expiry at which the credential is refreshed
            token_decoder: Decoder used when restoring a persisted session
            channel: Channel credential changes are published on
        """
        self.url = (supabase_url or settings.supabase_url).rstrip("/")
        if not self.url:
            raise ConfigurationError("SUPABASE_URL is not configured")
        self.anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self.base_api_url = f"{self.url}/auth/v1"
        self.http_client = http_client
        self.timeout = timeout or settings.http_timeout
        self.refresh_margin = (
            refresh_margin if refresh_margin is not None else settings.token_refresh_margin
        )
        self.token_decoder = token_decoder or TokenDecoder(supabase_url=self.url)
        self.channel = channel or CredentialChannel()
        self._credential: Optional[Credential] = None

    @property
    def access_token(self) -> Optional[str]:
        """Access token of the held credential, used as the table client's bearer."""
        return self._credential.access_token if self._credential else None

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def on_credential_change(self, callback: CredentialCallback) -> Subscription:
        """Subscribe to credential changes. Only one subscriber may be active."""
        return self.channel.subscribe(callback)

    async def _post(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        access_token: Optional[str] = None,
    ) -> httpx.Response:
        url = f"{self.base_api_url}/{path}"
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
        }
        try:
            if self.http_client is not None:
                response = await self.http_client.post(
                    url, json=json, params=params, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        url, json=json, params=params, headers=headers, timeout=self.timeout
                    )
        except httpx.TimeoutException as e:
            LOGGER.error(f"Timed out calling auth endpoint {path}")
            raise APITimeoutError(f"Auth request timed out: {path}", original_error=e)
        except httpx.HTTPError as e:
            LOGGER.error(f"Transport error calling auth endpoint {path}: {e}")
            raise APIClientError(f"Auth request failed: {path}: {e}", original_error=e)

        if response.status_code in _CREDENTIAL_STATUSES:
            message = _error_message(response)
            LOGGER.warning(
                f"Auth rejected: {message}",
                extra={"path": path, "status_code": response.status_code},
            )
            raise CredentialError(message)
        if response.status_code >= 400:
            LOGGER.error(
                f"Auth request failed: {response.text}",
                extra={"path": path, "status_code": response.status_code},
            )
            raise APIClientError(f"Auth request to {path} failed with status {response.status_code}")
        return response

    async def _set_credential(self, credential: Optional[Credential], event: AuthEvent) -> None:
        self._credential = credential
        await self.channel.publish(event, credential)

    async def sign_in_with_password(self, email: str, password: str) -> Credential:
        """Sign in with email and password.

        Args:
            email: User email
            password: User password

        Returns:
            The issued credential

        Raises:
            CredentialError: If the email or password is rejected
            APIClientError: If the auth service could not be reached
        """
        response = await self._post(
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        credential = _parse_credential(response.json())
        LOGGER.info(f"Signed in user: {credential.user_id}")
        await self._set_credential(credential, AuthEvent.SIGNED_IN)
        return credential

    async def sign_up(self, request: SignUpRequest) -> SignUpResult:
        """Create an account.

        The requested role and full name travel as user metadata. When the
        project requires email confirmation no session is issued and the
        result carries no credential.
        """
        response = await self._post(
            "signup",
            json={
                "email": request.email,
                "password": request.password,
                "data": {"full_name": request.full_name, "role": request.role.value},
            },
        )
        data = response.json()
        if data.get("access_token"):
            credential = _parse_credential(data)
            LOGGER.info(f"Signed up user with session: {credential.user_id}")
            await self._set_credential(credential, AuthEvent.SIGNED_IN)
            return SignUpResult(user_id=credential.user_id, email=credential.email, credential=credential)

        # Confirmation pending: the body is the user object itself
        user = data.get("user") or data
        LOGGER.info(f"Signed up user pending confirmation: {user.get('id')}")
        return SignUpResult(user_id=user.get("id"), email=user.get("email") or request.email)

    async def sign_out(self) -> None:
        """Sign out. The local credential is cleared even if the remote call fails."""
        credential = self._credential
        if credential is None:
            return
        try:
            await self._post("logout", access_token=credential.access_token)
        except (APIClientError, CredentialError) as e:
            LOGGER.warning(f"Remote sign-out failed, clearing local credential: {e}")
        LOGGER.info(f"Signed out user: {credential.user_id}")
        await self._set_credential(None, AuthEvent.SIGNED_OUT)

    async def refresh(self) -> Credential:
        """Exchange the refresh token for a new credential.

        Raises:
            CredentialError: If there is no refresh token or it is rejected
        """
        if self._credential is None or not self._credential.refresh_token:
            raise CredentialError("No refresh token available")
        response = await self._post(
            "token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": self._credential.refresh_token},
        )
        credential = _parse_credential(response.json())
        LOGGER.debug(f"Refreshed credential for user: {credential.user_id}")
        await self._set_credential(credential, AuthEvent.TOKEN_REFRESHED)
        return credential

    async def get_current_credential(self) -> Optional[Credential]:
        """Return the held credential, refreshing it when close to expiry.

        A rejected refresh clears the credential and publishes a sign-out.
        Transport failures propagate and leave the credential in place.
        """
        credential = self._credential
        if credential is None:
            return None
        if not credential.expires_within(self.refresh_margin):
            return credential
        try:
            return await self.refresh()
        except CredentialError as e:
            LOGGER.warning(f"Credential refresh rejected, signing out: {e}")
            await self._set_credential(None, AuthEvent.SIGNED_OUT)
            return None

    async def restore_session(self, access_token: str, refresh_token: Optional[str] = None) -> Credential:
        """Rebuild a persisted credential from its tokens.

        Raises:
            CredentialError: If the access token is expired or malformed
        """
        claims = self.token_decoder.decode(access_token)
        credential = Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=claims.expires_at,
            user_id=claims.sub,
            email=claims.email,
            user_metadata=claims.user_metadata or {},
        )
        LOGGER.info(f"Restored session for user: {credential.user_id}")
        await self._set_credential(credential, AuthEvent.SIGNED_IN)
        return credential
