"""End-to-end flows through a wired client over the in-memory backend."""

from datetime import timedelta
from decimal import Decimal

import pytest

from towify.core.exceptions import CredentialError, RoleLookupError, ScopeViolation
from towify.schemas.auth import SignUpRequest
from towify.schemas.fine import FineStatus
from towify.schemas.session import Destination, Role, SessionState
from towify.schemas.tow import TowCreate
from towify.schemas.vehicle import VehicleCreate


@pytest.mark.asyncio
async def test_staff_signs_up_and_records_tow(client, tables, navigations):
    async with client:
        assert navigations == [Destination.LOGIN]

        credential = await client.sign_up(
            SignUpRequest(
                email="staff@example.com", password="secret1", full_name="Sam Staff", role="staff"
            )
        )

        assert credential is not None
        session = client.get_current_session()
        assert session.role == Role.STAFF
        assert navigations == [Destination.LOGIN, Destination.STAFF_DASHBOARD]
        (profile,) = tables.rows("profiles")
        assert profile["role"] == "staff"

        result = await client.tows.record_tow(
            TowCreate(
                license_plate="XYZ999",
                location="5th Ave",
                reason="Blocking hydrant",
                fine_amount=Decimal("75"),
                fine_description="Towing fee",
            )
        )

        assert result.vehicle_created
        assert result.vehicle.owner_id is None
        assert result.fine.tow_id == result.tow.id
        assert result.fine.status == FineStatus.UNPAID
        assert result.fine.due_date - result.fine.issue_date == timedelta(days=30)
        assert result.notification is None

        summary = await client.dashboard.staff_summary()
        assert summary.active_tows == 1
        assert summary.vehicle_count == 1

        await client.sign_out()

        assert client.get_current_session().state == SessionState.UNAUTHENTICATED
        assert navigations[-1] == Destination.LOGIN
        with pytest.raises(ScopeViolation):
            await client.tows.list_tows()

        await client.sign_in("staff@example.com", "secret1")
        assert navigations[-1] == Destination.STAFF_DASHBOARD
        assert client.resolve_destination() == Destination.STAFF_DASHBOARD

    assert not client.resolver.started


@pytest.mark.asyncio
async def test_owner_is_notified_and_pays(client, tables, navigations):
    await client.start()

    await client.sign_up(
        SignUpRequest(email="owner@example.com", password="secret1", full_name="Olive Owner")
    )
    assert navigations[-1] == Destination.OWNER_DASHBOARD
    vehicle = await client.vehicles.add_vehicle(VehicleCreate(license_plate="abc123", make="Honda"))
    await client.sign_out()

    await client.sign_up(
        SignUpRequest(email="staff@example.com", password="secret1", full_name="Sam Staff", role="staff")
    )
    result = await client.tows.record_tow(
        TowCreate(
            license_plate="ABC123",
            location="Main St",
            reason="Expired meter",
            fine_amount=Decimal("40"),
            fine_description="Meter fine",
        )
    )
    assert result.vehicle.id == vehicle.id
    await client.sign_out()

    await client.sign_in("owner@example.com", "secret1")
    assert navigations[-1] == Destination.OWNER_DASHBOARD

    (notification,) = await client.notifications.list_notifications()
    assert notification.title == "Vehicle Towed"
    assert notification.related_id == result.tow.id

    (fine,) = await client.fines.list_fines()
    owner_id = client.get_current_session().user_id
    paid = await client.fines.pay_fine(fine.id, owner_id)
    assert paid.status == FineStatus.PAID

    summary = await client.dashboard.owner_summary()
    assert summary.unpaid_fines == 0
    assert len(summary.recent_tows) == 1

    await client.close()
    await client.close()


@pytest.mark.asyncio
async def test_rejected_sign_in_stays_at_login(client, auth, navigations):
    auth.register("staff@example.com", "secret1")
    await client.start()

    with pytest.raises(CredentialError):
        await client.sign_in("staff@example.com", "wrong-password")

    assert client.get_current_session().state == SessionState.UNAUTHENTICATED
    assert navigations == [Destination.LOGIN]
    await client.close()


@pytest.mark.asyncio
async def test_failed_role_lookup_never_reaches_a_dashboard(client, auth, tables, navigations):
    user_id = auth.register("staff@example.com", "secret1")
    tables.seed("profiles", id=user_id, email="staff@example.com", role="staff")
    await client.start()
    tables.fail("select", "profiles")

    with pytest.raises(RoleLookupError):
        await client.sign_in("staff@example.com", "secret1")

    session = client.get_current_session()
    assert session.state == SessionState.AUTHENTICATED
    assert session.role is None
    assert navigations == [Destination.LOGIN]
    await client.close()
