"""PostgREST table client for the Supabase REST API."""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic_core import to_jsonable_python

from towify.core.config import settings
from towify.core.exceptions import APIClientError, APITimeoutError, DatabaseError, ValidationError
from towify.database.table_client import Filter, FilterOp, Order, Row, TableClient
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)

TokenProvider = Callable[[], Optional[str]]


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    value = to_jsonable_python(value)
    return str(value)


def _quote(value: Any) -> str:
    text = _format_scalar(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def encode_filter(flt: Filter) -> Tuple[str, str]:
    """Encode a filter as a PostgREST query parameter."""
    if flt.op == FilterOp.IN:
        values = ",".join(_quote(v) for v in flt.value)
        return flt.column, f"in.({values})"
    if flt.op == FilterOp.IS:
        value = "null" if flt.value is None else _format_scalar(flt.value)
        return flt.column, f"is.{value}"
    return flt.column, f"{flt.op.value}.{_format_scalar(flt.value)}"


def encode_order(order: Sequence[Order]) -> str:
    return ",".join(f"{o.column}.{'asc' if o.ascending else 'desc'}" for o in order)


class PostgrestClient(TableClient):
    """Table client speaking to ``{SUPABASE_URL}/rest/v1``.

    Requests carry the anon key as ``apikey`` and the signed-in user's access
    token as bearer, so the backend's row-level security evaluates every call
    as that user.
    """

    def __init__(
        self,
        supabase_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the client.

        Args:
            supabase_url: Supabase project URL
            anon_key: Project anon (public) key
            token_provider: Callable returning the current access token, or None
            http_client: Shared HTTP client; a short-lived one is used per call if omitted
            timeout: Request timeout in seconds
        """
        self.url = (supabase_url or settings.supabase_url).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self.base_api_url = f"{self.url}/rest/v1"
        self.token_provider = token_provider
        self.http_client = http_client
        self.timeout = timeout or settings.http_timeout

    def _headers(self, prefer_representation: bool = False) -> Dict[str, str]:
        token = self.token_provider() if self.token_provider else None
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }
        if prefer_representation:
            headers["Prefer"] = "return=representation"
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        params: List[Tuple[str, str]],
        json: Any = None,
        prefer_representation: bool = False,
    ) -> List[Row]:
        url = f"{self.base_api_url}/{table}"
        headers = self._headers(prefer_representation)
        payload = to_jsonable_python(json) if json is not None else None

        try:
            if self.http_client is not None:
                response = await self.http_client.request(
                    method, url, params=params, json=payload, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(
                        method, url, params=params, json=payload, headers=headers, timeout=self.timeout
                    )
        except httpx.TimeoutException as e:
            LOGGER.error(f"Timed out calling {method} {table}", extra={"table": table})
            raise APITimeoutError(f"Table request timed out: {method} {table}", original_error=e)
        except httpx.HTTPError as e:
            LOGGER.error(f"Transport error calling {method} {table}: {e}", extra={"table": table})
            raise APIClientError(f"Table request failed: {method} {table}: {e}", original_error=e)

        if response.status_code >= 400:
            LOGGER.error(
                f"Table request rejected: {response.text}",
                extra={"table": table, "method": method, "status_code": response.status_code},
            )
            raise DatabaseError(
                f"{method} {table} failed: {response.text}", status_code=response.status_code
            )

        if response.status_code == 204 or not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> List[Row]:
        params = [("select", columns)] + [encode_filter(f) for f in filters]
        if order:
            params.append(("order", encode_order(order)))
        if limit is not None:
            params.append(("limit", str(limit)))
        return await self._request("GET", table, params)

    async def insert(self, table: str, payload: Row) -> Row:
        rows = await self._request("POST", table, [], json=payload, prefer_representation=True)
        if not rows:
            raise DatabaseError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(self, table: str, values: Row, filters: Sequence[Filter]) -> List[Row]:
        if not filters:
            raise ValidationError(f"Refusing to update {table} without filters")
        params = [encode_filter(f) for f in filters]
        return await self._request("PATCH", table, params, json=values, prefer_representation=True)

    async def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        if not filters:
            raise ValidationError(f"Refusing to delete from {table} without filters")
        params = [encode_filter(f) for f in filters]
        return await self._request("DELETE", table, params, prefer_representation=True)
