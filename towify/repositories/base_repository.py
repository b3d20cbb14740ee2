"""Generic repository over a backend table."""

from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from towify.core.exceptions import DatabaseError
from towify.core.scope import Table
from towify.database.table_client import Filter, Order, TableClient
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class BaseRepository(Generic[ModelT]):
    """Typed CRUD for one table.

    Repositories apply exactly the filters they are given. Scoping is the
    caller's job (see ``towify.services.scoped_service``).
    """

    table: Table
    model: Type[ModelT]

    def __init__(self, client: TableClient):
        """Initialize repository with a table client.

        Args:
            client: Backend table client
        """
        self.client = client

    def _to_model(self, row: Dict[str, Any]) -> ModelT:
        """Validate a backend row.

        Raises:
            DatabaseError: If the row does not fit the model
        """
        try:
            return self.model.model_validate(row)
        except PydanticValidationError as e:
            LOGGER.error(f"Malformed {self.table.value} row {row.get('id')}: {e}")
            raise DatabaseError(
                f"Malformed {self.table.value} row {row.get('id')}", original_error=e
            ) from e

    async def find(
        self,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        rows = await self.client.select(self.table.value, filters=filters, order=order, limit=limit)
        return [self._to_model(row) for row in rows]

    async def find_one(self, filters: Sequence[Filter]) -> Optional[ModelT]:
        rows = await self.find(filters, limit=1)
        return rows[0] if rows else None

    async def get_by_id(self, row_id: str, filters: Sequence[Filter] = ()) -> Optional[ModelT]:
        """Get a row by ID, optionally further constrained by ``filters``."""
        return await self.find_one([Filter.eq("id", row_id), *filters])

    async def create(self, payload: Dict[str, Any]) -> ModelT:
        row = await self.client.insert(self.table.value, payload)
        model = self._to_model(row)
        LOGGER.info(f"Created {self.table.value} row: {row.get('id')}")
        return model

    async def update(self, values: Dict[str, Any], filters: Sequence[Filter]) -> List[ModelT]:
        rows = await self.client.update(self.table.value, values, filters)
        return [self._to_model(row) for row in rows]

    async def delete(self, filters: Sequence[Filter]) -> List[ModelT]:
        rows = await self.client.delete(self.table.value, filters)
        return [self._to_model(row) for row in rows]
