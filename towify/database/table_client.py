"""Table access abstraction.

Services talk to the backend through ``TableClient`` so the PostgREST adapter
can be swapped for an in-memory implementation in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence


class FilterOp(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    ILIKE = "ilike"
    IN = "in"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    IS = "is"


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so ``text`` matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class Filter:
    """A single column predicate."""

    column: str
    op: FilterOp
    value: Any

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        if value is None:
            return cls(column, FilterOp.IS, None)
        return cls(column, FilterOp.EQ, value)

    @classmethod
    def neq(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.NEQ, value)

    @classmethod
    def contains(cls, column: str, text: str) -> "Filter":
        """Case-insensitive substring match on the literal ``text``."""
        return cls(column, FilterOp.ILIKE, f"*{escape_like(text)}*")

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> "Filter":
        return cls(column, FilterOp.IN, tuple(values))

    @classmethod
    def lt(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.LT, value)

    @classmethod
    def lte(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.LTE, value)

    @classmethod
    def gt(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.GT, value)

    @classmethod
    def gte(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.GTE, value)

    @classmethod
    def is_null(cls, column: str) -> "Filter":
        return cls(column, FilterOp.IS, None)


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


Row = Dict[str, Any]


class TableClient(ABC):
    """Row-oriented CRUD over named tables."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> List[Row]:
        """Return rows of ``table`` matching every filter."""

    @abstractmethod
    async def insert(self, table: str, payload: Row) -> Row:
        """Insert one row and return it as stored."""

    @abstractmethod
    async def update(self, table: str, values: Row, filters: Sequence[Filter]) -> List[Row]:
        """Update matching rows and return them as stored."""

    @abstractmethod
    async def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        """Delete matching rows and return them."""
