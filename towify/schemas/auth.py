"""Authentication schemas for Supabase credentials.

This module defines Pydantic models for the credential held by the client,
sign-up input and the ``profiles`` row that carries the user's role.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from towify.schemas.session import Role
from towify.utils.time_utils import as_utc, utcnow


class AuthEvent(str, Enum):
    """Credential change events pushed by the auth service."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class Credential(BaseModel):
    """Access credential issued by Supabase Auth."""

    access_token: str = Field(..., repr=False, description="JWT access token")
    refresh_token: Optional[str] = Field(None, repr=False, description="Refresh token")
    expires_at: Optional[datetime] = Field(None, description="Access token expiry (UTC)")
    user_id: str = Field(..., description="Supabase user ID")
    email: Optional[str] = Field(None, description="User email")
    user_metadata: Dict[str, Any] = Field(default_factory=dict, description="User metadata")

    def expires_within(self, seconds: int, now: Optional[datetime] = None) -> bool:
        """Check whether the access token expires within ``seconds``."""
        if self.expires_at is None:
            return False
        now = now or utcnow()
        return (as_utc(self.expires_at) - now).total_seconds() <= seconds


class SignUpRequest(BaseModel):
    """Sign-up form input."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, repr=False, description="Password, at least 6 characters")
    full_name: str = Field(..., description="User's full name")
    role: Role = Field(default=Role.OWNER, description="Requested role")

    @field_validator("full_name")
    @classmethod
    def _full_name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Full name is required")
        return value


class SignInRequest(BaseModel):
    """Login form input."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, repr=False, description="Password, at least 6 characters")


class SignUpResult(BaseModel):
    """Outcome of a sign-up call.

    ``credential`` is None while email confirmation is pending; the account
    (and its user id) exists either way.
    """

    user_id: Optional[str] = None
    email: Optional[str] = None
    credential: Optional[Credential] = None


class Profile(BaseModel):
    """Row of the ``profiles`` table."""

    id: str = Field(..., description="Supabase user ID")
    email: Optional[str] = Field(None, description="User email")
    full_name: Optional[str] = Field(None, description="User's full name")
    role: Optional[str] = Field(None, description="Raw role value as stored")
    phone: Optional[str] = Field(None, description="Contact phone")

    @property
    def parsed_role(self) -> Optional[Role]:
        return Role.parse(self.role)


__all__ = [
    "AuthEvent",
    "Credential",
    "SignUpRequest",
    "SignInRequest",
    "SignUpResult",
    "Profile",
]
