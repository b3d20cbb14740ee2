"""Session, role and navigation destination models.

A ``Session`` is an immutable snapshot. The resolver replaces it wholesale on
every transition so readers never observe a half-updated value.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    """The closed set of user roles."""

    OWNER = "owner"
    STAFF = "staff"
    OFFICER = "officer"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        """Parse a backend role value.

        Only the exact stored values match. Anything else, including a
        differently cased or padded value, yields None rather than an error, so
        an unrecognized value can never be mistaken for a role that grants a
        dashboard.
        """
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class SessionState(str, Enum):
    RESOLVING = "resolving"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class Destination(str, Enum):
    """Navigation targets the router can emit."""

    SPLASH_HOLD = "splash_hold"
    LOGIN = "login"
    OWNER_DASHBOARD = "owner_dashboard"
    STAFF_DASHBOARD = "staff_dashboard"
    OFFICER_DASHBOARD = "officer_dashboard"


class Session(BaseModel):
    """Who is signed in and with which role."""

    model_config = ConfigDict(frozen=True)

    credential_present: bool = Field(default=False, description="Whether an auth credential is held")
    user_id: Optional[str] = Field(None, description="Supabase user ID")
    email: Optional[str] = Field(None, description="User email")
    role: Optional[Role] = Field(None, description="Resolved role, None when unknown")
    resolving: bool = Field(default=False, description="A credential check or role lookup is in flight")
    role_error: Optional[str] = Field(
        None, description="Set when the role lookup failed (as opposed to finding no role)"
    )

    @model_validator(mode="after")
    def _check_invariants(self) -> "Session":
        if self.role is not None and self.user_id is None:
            raise ValueError("role requires a user_id")
        if self.user_id is not None and not self.credential_present:
            raise ValueError("user_id requires a credential")
        return self

    @property
    def state(self) -> SessionState:
        if self.resolving:
            return SessionState.RESOLVING
        if not self.credential_present:
            return SessionState.UNAUTHENTICATED
        return SessionState.AUTHENTICATED

    @classmethod
    def initial(cls) -> "Session":
        """Process-start state: nothing is known yet."""
        return cls(resolving=True)

    @classmethod
    def unauthenticated(cls) -> "Session":
        return cls()

    @classmethod
    def resolving_for(cls, user_id: str, email: Optional[str] = None) -> "Session":
        return cls(credential_present=True, user_id=user_id, email=email, resolving=True)

    @classmethod
    def authenticated(
        cls,
        user_id: str,
        role: Optional[Role],
        email: Optional[str] = None,
        role_error: Optional[str] = None,
    ) -> "Session":
        return cls(
            credential_present=True,
            user_id=user_id,
            email=email,
            role=role,
            role_error=role_error,
        )
