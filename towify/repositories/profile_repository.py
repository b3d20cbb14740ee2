"""Repository for the ``profiles`` table."""

from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from towify.core.exceptions import DatabaseError
from towify.database.table_client import Filter, TableClient
from towify.schemas.auth import Profile
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)

PROFILES_TABLE = "profiles"


def _to_profile(row: Dict[str, Any]) -> Profile:
    try:
        return Profile.model_validate(row)
    except PydanticValidationError as e:
        raise DatabaseError(f"Malformed profile row {row.get('id')}", original_error=e) from e


class ProfileRepository:
    """Repository for user profile rows."""

    def __init__(self, client: TableClient):
        """Initialize repository with a table client.

        Args:
            client: Backend table client
        """
        self.client = client

    async def get_by_id(self, user_id: str) -> Optional[Profile]:
        """Get a profile by Supabase user ID.

        Args:
            user_id: Supabase user ID

        Returns:
            Profile or None if no row exists
        """
        rows = await self.client.select(PROFILES_TABLE, filters=[Filter.eq("id", user_id)], limit=1)
        return _to_profile(rows[0]) if rows else None

    async def get_role_value(self, user_id: str) -> Optional[str]:
        """Get the raw role value stored for a user, None if no row exists."""
        rows = await self.client.select(
            PROFILES_TABLE, filters=[Filter.eq("id", user_id)], limit=1, columns="role"
        )
        if not rows:
            return None
        return rows[0].get("role")

    async def create(self, profile: Profile) -> Profile:
        row = await self.client.insert(PROFILES_TABLE, profile.model_dump(exclude_none=True))
        LOGGER.info(f"Created profile: {profile.id}")
        return _to_profile(row)
