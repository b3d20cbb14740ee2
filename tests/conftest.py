"""Pytest configuration and shared fixtures."""

import copy
import os
import re
import uuid
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")

from towify.client import TowifyClient  # noqa: E402
from towify.core.events import CredentialChannel, Subscription  # noqa: E402
from towify.core.exceptions import CredentialError, DatabaseError  # noqa: E402
from towify.database.table_client import Filter, FilterOp, Order, Row, TableClient  # noqa: E402
from towify.repositories.profile_repository import ProfileRepository  # noqa: E402
from towify.schemas.auth import AuthEvent, Credential, SignUpRequest, SignUpResult  # noqa: E402
from towify.schemas.session import Role, Session  # noqa: E402
from towify.services.role_router import RoleRouter  # noqa: E402
from towify.services.session_service import SessionResolver, SessionStore  # noqa: E402
from towify.utils.time_utils import utcnow  # noqa: E402


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _like_regex(pattern: str) -> "re.Pattern[str]":
    parts = []
    chars = iter(pattern)
    for char in chars:
        if char == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif char in "*%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _matches(row: Row, flt: Filter) -> bool:
    value = _plain(row.get(flt.column))
    if flt.op == FilterOp.EQ:
        return value == _plain(flt.value)
    if flt.op == FilterOp.NEQ:
        return value != _plain(flt.value)
    if flt.op == FilterOp.ILIKE:
        if value is None:
            return False
        return _like_regex(str(flt.value)).fullmatch(str(value)) is not None
    if flt.op == FilterOp.IN:
        return value in {_plain(v) for v in flt.value}
    if flt.op == FilterOp.IS:
        return value is flt.value if flt.value is not None else value is None
    if value is None:
        return False
    target = _plain(flt.value)
    if flt.op == FilterOp.LT:
        return value < target
    if flt.op == FilterOp.LTE:
        return value <= target
    if flt.op == FilterOp.GT:
        return value > target
    if flt.op == FilterOp.GTE:
        return value >= target
    raise AssertionError(f"Unsupported filter op {flt.op}")


class InMemoryTableClient(TableClient):
    """Table client over plain dicts, with the filter semantics of PostgREST.

    ``fail(operation, table)`` makes the next matching call raise, for
    exercising partial failures.
    """

    def __init__(self):
        self.tables: Dict[str, List[Row]] = defaultdict(list)
        self.calls: List[Tuple[str, str, Any]] = []
        self._failures: Dict[Tuple[str, str], Exception] = {}

    def seed(self, table: str, **row: Any) -> Row:
        row = {key: _plain(value) for key, value in row.items()}
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", utcnow())
        self.tables[table].append(row)
        return copy.deepcopy(row)

    def rows(self, table: str) -> List[Row]:
        return copy.deepcopy(self.tables[table])

    def fail(self, operation: str, table: str, error: Optional[Exception] = None) -> None:
        self._failures[(operation, table)] = error or DatabaseError(
            f"injected {operation} failure on {table}", status_code=500
        )

    def _record(self, operation: str, table: str, detail: Any) -> None:
        self.calls.append((operation, table, detail))
        error = self._failures.pop((operation, table), None)
        if error is not None:
            raise error

    def _select_rows(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        return [row for row in self.tables[table] if all(_matches(row, f) for f in filters)]

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> List[Row]:
        self._record("select", table, list(filters))
        rows = self._select_rows(table, filters)
        for o in reversed(order):
            present = [r for r in rows if r.get(o.column) is not None]
            missing = [r for r in rows if r.get(o.column) is None]
            present.sort(key=lambda r: _plain(r[o.column]), reverse=not o.ascending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        rows = copy.deepcopy(rows)
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            rows = [{c: row.get(c) for c in wanted} for row in rows]
        return rows

    async def insert(self, table: str, payload: Row) -> Row:
        self._record("insert", table, payload)
        return self.seed(table, **payload)

    async def update(self, table: str, values: Row, filters: Sequence[Filter]) -> List[Row]:
        self._record("update", table, (values, list(filters)))
        matched = self._select_rows(table, filters)
        for row in matched:
            row.update({key: _plain(value) for key, value in values.items()})
        return copy.deepcopy(matched)

    async def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        self._record("delete", table, list(filters))
        matched = self._select_rows(table, filters)
        self.tables[table] = [row for row in self.tables[table] if row not in matched]
        return copy.deepcopy(matched)


class FakeAuthService:
    """Stands in for the GoTrue auth service, publishing the same events."""

    def __init__(self, confirm_email: bool = False):
        self.channel = CredentialChannel()
        self.confirm_email = confirm_email
        self.users: Dict[str, Dict[str, str]] = {}
        self.sign_out_calls = 0
        self._credential: Optional[Credential] = None

    @property
    def access_token(self) -> Optional[str]:
        return self._credential.access_token if self._credential else None

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def register(self, email: str, password: str, user_id: Optional[str] = None) -> str:
        user_id = user_id or str(uuid.uuid4())
        self.users[email.lower()] = {"password": password, "user_id": user_id}
        return user_id

    def on_credential_change(self, callback) -> Subscription:
        return self.channel.subscribe(callback)

    def make_credential(self, user_id: str, email: Optional[str] = None) -> Credential:
        return Credential(
            access_token=f"token-{user_id}-{uuid.uuid4().hex[:6]}",
            refresh_token=f"refresh-{user_id}",
            user_id=user_id,
            email=email,
        )

    async def emit(self, event: AuthEvent, credential: Optional[Credential]) -> None:
        """Simulate a credential change pushed by the backend."""
        self._credential = credential
        await self.channel.publish(event, credential)

    async def sign_in_with_password(self, email: str, password: str) -> Credential:
        user = self.users.get(email.lower())
        if user is None or user["password"] != password:
            raise CredentialError("Invalid login credentials")
        credential = self.make_credential(user["user_id"], email)
        await self.emit(AuthEvent.SIGNED_IN, credential)
        return credential

    async def sign_up(self, request: SignUpRequest) -> SignUpResult:
        if request.email.lower() in self.users:
            raise CredentialError("User already registered")
        user_id = self.register(request.email, request.password)
        if self.confirm_email:
            return SignUpResult(user_id=user_id, email=request.email)
        credential = self.make_credential(user_id, request.email)
        await self.emit(AuthEvent.SIGNED_IN, credential)
        return SignUpResult(user_id=user_id, email=request.email, credential=credential)

    async def sign_out(self) -> None:
        if self._credential is None:
            return
        self.sign_out_calls += 1
        await self.emit(AuthEvent.SIGNED_OUT, None)

    async def get_current_credential(self) -> Optional[Credential]:
        return self._credential


@pytest.fixture
def tables() -> InMemoryTableClient:
    return InMemoryTableClient()


@pytest.fixture
def auth() -> FakeAuthService:
    return FakeAuthService()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def navigations() -> List:
    """Destinations the router navigated to, in order."""
    return []


@pytest.fixture
def router(navigations) -> RoleRouter:
    return RoleRouter(navigations.append)


@pytest.fixture
def resolver(auth, tables, store, router) -> SessionResolver:
    store.subscribe(router.on_session_change)
    return SessionResolver(auth, ProfileRepository(tables), store=store, router=router)


@pytest.fixture
def act_as(store, tables) -> Callable[..., str]:
    """Put a signed-in session with ``role`` in the store.

    Returns the user id. A profile row is seeded so lookups agree.
    """

    def _act_as(role: Role, user_id: Optional[str] = None) -> str:
        user_id = user_id or str(uuid.uuid4())
        if not any(p["id"] == user_id for p in tables.tables["profiles"]):
            tables.seed("profiles", id=user_id, email=f"{role.value}@example.com", role=role.value)
        store.set(Session.authenticated(user_id, role, email=f"{role.value}@example.com"))
        return user_id

    return _act_as


@pytest.fixture
def client(auth, tables, navigations) -> TowifyClient:
    """A fully wired client over the in-memory backend."""
    return TowifyClient(auth=auth, tables=tables, navigate=navigations.append)
