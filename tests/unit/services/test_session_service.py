"""Unit tests for the session store and resolver."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from towify.core.exceptions import (
    AppError,
    CredentialError,
    PartialWriteFailure,
    RoleLookupError,
    ValidationError,
)
from towify.repositories.profile_repository import ProfileRepository
from towify.schemas.auth import AuthEvent, SignUpRequest
from towify.schemas.session import Destination, Role, Session, SessionState
from towify.services.session_service import SessionResolver, SessionStore


def seed_user(auth, tables, email, role, password="secret1"):
    user_id = auth.register(email, password)
    if role is not None:
        tables.seed("profiles", id=user_id, email=email, role=role)
    return user_id


class TestSessionStore:

    def test_starts_resolving(self):
        assert SessionStore().current.state == SessionState.RESOLVING

    def test_notifies_only_on_change(self):
        store = SessionStore()
        seen = []
        store.subscribe(seen.append)

        store.set(Session.unauthenticated())
        store.set(Session.unauthenticated())

        assert seen == [Session.unauthenticated()]

    def test_unsubscribe(self):
        store = SessionStore()
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        unsubscribe()

        store.set(Session.unauthenticated())

        assert seen == []


@pytest.mark.asyncio
async def test_start_without_credential_goes_to_login(resolver, store, navigations):
    session = await resolver.start()

    assert session.state == SessionState.UNAUTHENTICATED
    assert store.current == session
    assert navigations == [Destination.LOGIN]


@pytest.mark.asyncio
async def test_start_is_idempotent_and_subscribes_once(resolver, auth):
    await resolver.start()
    await resolver.start()

    assert auth.channel.has_subscriber
    with pytest.raises(AppError):
        auth.channel.subscribe(lambda event, credential: None)


@pytest.mark.asyncio
async def test_close_and_restart_never_leaks_subscriptions(resolver, auth):
    await resolver.start()
    resolver.close()
    resolver.close()
    assert not auth.channel.has_subscriber

    await resolver.start()
    assert auth.channel.has_subscriber
    assert resolver.started


@pytest.mark.asyncio
async def test_context_manager(auth, tables):
    resolver = SessionResolver(auth, ProfileRepository(tables))
    async with resolver as started:
        assert started.started
    assert not resolver.started


@pytest.mark.asyncio
async def test_sign_in_resolves_role_and_routes(resolver, auth, tables, store, navigations):
    user_id = seed_user(auth, tables, "staff@example.com", "staff")
    await resolver.start()
    history = []
    store.subscribe(history.append)

    session = await resolver.sign_in("staff@example.com", "secret1")

    assert session.user_id == user_id
    assert session.role == Role.STAFF
    assert navigations == [Destination.LOGIN, Destination.STAFF_DASHBOARD]
    # The role is never carried over: the lookup starts from a resolving session
    assert history[0] == Session.resolving_for(user_id, "staff@example.com")
    assert history[0].role is None


@pytest.mark.asyncio
async def test_sign_in_before_start_still_resolves(resolver, auth, tables):
    seed_user(auth, tables, "owner@example.com", "owner")

    session = await resolver.sign_in("owner@example.com", "secret1")

    assert session.role == Role.OWNER


@pytest.mark.asyncio
@pytest.mark.parametrize("stored", ["Staff", "OFFICER", "staff "])
async def test_role_values_must_match_exactly(resolver, auth, tables, navigations, stored):
    seed_user(auth, tables, "user@example.com", stored)
    await resolver.start()

    session = await resolver.sign_in("user@example.com", "secret1")

    assert session.role is None
    assert navigations == [Destination.LOGIN]


@pytest.mark.asyncio
@pytest.mark.parametrize("stored", [None, "admin", ""])
async def test_missing_or_unknown_role_stays_at_login(resolver, auth, tables, navigations, stored):
    user_id = auth.register("user@example.com", "secret1")
    if stored is not None:
        tables.seed("profiles", id=user_id, role=stored)
    await resolver.start()

    session = await resolver.sign_in("user@example.com", "secret1")

    assert session.state == SessionState.AUTHENTICATED
    assert session.role is None
    assert session.role_error is None
    assert navigations == [Destination.LOGIN]


@pytest.mark.asyncio
async def test_role_lookup_failure_is_reported(resolver, auth, tables, store, navigations):
    seed_user(auth, tables, "staff@example.com", "staff")
    await resolver.start()
    tables.fail("select", "profiles")

    with pytest.raises(RoleLookupError):
        await resolver.sign_in("staff@example.com", "secret1")

    assert store.current.state == SessionState.AUTHENTICATED
    assert store.current.role is None
    assert store.current.role_error
    assert navigations == [Destination.LOGIN]


@pytest.mark.asyncio
async def test_bad_password_raises_credential_error(resolver, auth, tables, store):
    seed_user(auth, tables, "staff@example.com", "staff")
    await resolver.start()

    with pytest.raises(CredentialError):
        await resolver.sign_in("staff@example.com", "wrong-password")

    assert store.current.state == SessionState.UNAUTHENTICATED


@pytest.mark.asyncio
@pytest.mark.parametrize("email, password", [("not-an-email", "secret1"), ("a@example.com", "12345")])
async def test_sign_in_validates_input(resolver, email, password):
    with pytest.raises(ValidationError):
        await resolver.sign_in(email, password)


@pytest.mark.asyncio
async def test_sign_out_is_idempotent(resolver, auth, tables, store, navigations):
    seed_user(auth, tables, "officer@example.com", "officer")
    await resolver.start()
    await resolver.sign_in("officer@example.com", "secret1")

    await resolver.sign_out()
    await resolver.sign_out()

    assert store.current == Session.unauthenticated()
    assert auth.sign_out_calls == 1
    assert navigations == [Destination.LOGIN, Destination.OFFICER_DASHBOARD, Destination.LOGIN]


@pytest.mark.asyncio
async def test_credential_change_re_resolves_from_scratch(resolver, auth, tables, store):
    staff_id = seed_user(auth, tables, "staff@example.com", "staff")
    owner_id = seed_user(auth, tables, "owner@example.com", "owner")
    await resolver.start()
    await resolver.sign_in("staff@example.com", "secret1")
    history = []
    store.subscribe(history.append)

    await auth.emit(AuthEvent.SIGNED_IN, auth.make_credential(owner_id, "owner@example.com"))

    assert store.current.user_id == owner_id
    assert store.current.role == Role.OWNER
    assert all(not (s.user_id == owner_id and s.role == Role.STAFF) for s in history)
    assert staff_id != owner_id


@pytest.mark.asyncio
async def test_token_refresh_re_runs_role_lookup(resolver, auth, tables, store):
    user_id = seed_user(auth, tables, "owner@example.com", "owner")
    await resolver.start()
    await resolver.sign_in("owner@example.com", "secret1")
    tables.tables["profiles"][0]["role"] = "staff"

    await auth.emit(AuthEvent.TOKEN_REFRESHED, auth.make_credential(user_id))

    assert store.current.role == Role.STAFF


@pytest.mark.asyncio
async def test_stale_role_lookup_is_discarded(auth, store):
    gate = asyncio.Event()

    async def get_role_value(user_id):
        if user_id == "slow-user":
            await gate.wait()
            return "staff"
        return "owner"

    profiles = Mock(spec=ProfileRepository)
    profiles.get_role_value = AsyncMock(side_effect=get_role_value)
    resolver = SessionResolver(auth, profiles, store=store)
    await resolver.start()

    slow = asyncio.create_task(auth.emit(AuthEvent.SIGNED_IN, auth.make_credential("slow-user")))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    await auth.emit(AuthEvent.SIGNED_IN, auth.make_credential("fast-user"))
    gate.set()
    await slow

    assert store.current.user_id == "fast-user"
    assert store.current.role == Role.OWNER


@pytest.mark.asyncio
async def test_refresh_role(resolver, tables):
    tables.seed("profiles", id="u1", role="officer")

    assert await resolver.refresh_role("u1") == Role.OFFICER
    assert await resolver.refresh_role("missing") is None


@pytest.mark.asyncio
async def test_sign_up_creates_profile_and_routes(resolver, tables, store, navigations):
    await resolver.start()
    request = SignUpRequest(
        email="new.staff@example.com", password="secret1", full_name="  New Staff ", role=Role.STAFF
    )

    credential = await resolver.sign_up(request)

    assert credential is not None
    profiles = tables.rows("profiles")
    assert len(profiles) == 1
    assert profiles[0]["id"] == credential.user_id
    assert profiles[0]["full_name"] == "New Staff"
    assert profiles[0]["role"] == "staff"
    assert store.current.role == Role.STAFF
    assert navigations[-1] == Destination.STAFF_DASHBOARD


@pytest.mark.asyncio
async def test_sign_up_pending_confirmation(auth, tables, store):
    auth.confirm_email = True
    resolver = SessionResolver(auth, ProfileRepository(tables), store=store)
    await resolver.start()

    credential = await resolver.sign_up(
        SignUpRequest(email="owner@example.com", password="secret1", full_name="Owner")
    )

    assert credential is None
    assert tables.rows("profiles")[0]["role"] == "owner"
    assert store.current.state == SessionState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_sign_up_profile_failure_is_partial(resolver, tables):
    await resolver.start()
    tables.fail("insert", "profiles")

    with pytest.raises(PartialWriteFailure) as exc_info:
        await resolver.sign_up(
            SignUpRequest(email="owner@example.com", password="secret1", full_name="Owner")
        )

    assert exc_info.value.step == "profile"
    assert exc_info.value.completed["user_id"]
