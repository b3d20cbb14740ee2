"""Backend table access."""

from towify.database.postgrest_client import PostgrestClient
from towify.database.table_client import Filter, FilterOp, Order, Row, TableClient

__all__ = [
    "Filter",
    "FilterOp",
    "Order",
    "PostgrestClient",
    "Row",
    "TableClient",
]
