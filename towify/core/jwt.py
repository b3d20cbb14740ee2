"""Access token decoding for Supabase credentials.

The client treats the access token as opaque except when a persisted session
is restored: then the token's claims are the only record of who it belongs to
and when it expires.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import jwt
from pydantic import BaseModel

from towify.core.config import settings
from towify.core.exceptions import CredentialError
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AccessTokenClaims(BaseModel):
    """Decoded claims of a Supabase access token."""

    sub: str  # User ID
    email: Optional[str] = None
    role: str = "authenticated"
    exp: int  # Expiry timestamp
    iat: Optional[int] = None
    iss: Optional[str] = None
    aud: Optional[str] = None

    app_metadata: Optional[Dict[str, Any]] = None
    user_metadata: Optional[Dict[str, Any]] = None
    session_id: Optional[str] = None

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


class TokenDecoder:
    """Decodes Supabase access tokens.

    With a JWT secret the HS256 signature, expiry and issuer are verified.
    Without one (the usual case on a client holding only the anon key) the
    claims are read without signature verification; expiry is still enforced.
    The backend verifies every request it receives regardless.
    """

    def __init__(self, supabase_url: Optional[str] = None, jwt_secret: Optional[str] = None):
        """Initialize the decoder.

        Args:
            supabase_url: Supabase project URL for issuer validation
            jwt_secret: Supabase JWT secret for HS256 verification
        """
        base_url = (supabase_url if supabase_url is not None else settings.supabase_url).rstrip("/")
        self.expected_issuer = f"{base_url}/auth/v1" if base_url else None
        self.jwt_secret = jwt_secret if jwt_secret is not None else settings.supabase_jwt_secret

    @property
    def verifies_signature(self) -> bool:
        return bool(self.jwt_secret)

    def decode(self, token: str) -> AccessTokenClaims:
        """Decode and validate an access token.

        Args:
            token: JWT access token

        Returns:
            Decoded access token claims

        Raises:
            CredentialError: If the token is malformed, expired or fails verification
        """
        try:
            if self.verifies_signature:
                payload = jwt.decode(
                    token,
                    self.jwt_secret,
                    algorithms=["HS256"],
                    audience="authenticated",
                    options={"require": ["sub", "exp"]},
                )
                if self.expected_issuer and payload.get("iss") not in (None, self.expected_issuer):
                    raise jwt.InvalidIssuerError(f"Invalid issuer: {payload.get('iss')}")
            else:
                payload = jwt.decode(
                    token,
                    options={
                        "verify_signature": False,
                        "verify_exp": True,
                        "verify_aud": False,
                        "require": ["sub", "exp"],
                    },
                )

            claims = AccessTokenClaims(**payload)
            LOGGER.debug(f"Decoded access token for user: {claims.sub}")
            return claims

        except jwt.ExpiredSignatureError as e:
            LOGGER.warning(f"Token expired: {e}")
            raise CredentialError("Token has expired", original_error=e) from e
        except jwt.InvalidIssuerError as e:
            LOGGER.warning(f"Invalid issuer: {e}")
            raise CredentialError("Invalid token issuer", original_error=e) from e
        except jwt.InvalidTokenError as e:
            LOGGER.warning(f"Invalid token: {e}")
            raise CredentialError("Invalid access token", original_error=e) from e
        except ValueError as e:
            LOGGER.warning(f"Token claims rejected: {e}")
            raise CredentialError("Invalid access token claims", original_error=e) from e
