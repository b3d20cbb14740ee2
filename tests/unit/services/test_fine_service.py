"""Unit tests for fine issuing, listing and payment."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from towify.core.exceptions import DatabaseError, FineAlreadyPaidError, NotFoundError, ScopeViolation
from towify.schemas.fine import FineCreate, FineDisplayStatus, FineStatus
from towify.schemas.session import Role
from towify.services.fine_service import FineService, generate_transaction_id

ISSUED = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(store, tables) -> FineService:
    return FineService(store, tables, due_days=30)


@pytest.fixture
def vehicles(tables):
    return {
        "mine": tables.seed("vehicles", owner_id="owner-1", license_plate="ABC123"),
        "theirs": tables.seed("vehicles", owner_id="owner-2", license_plate="XYZ999"),
    }


def seed_fine(tables, vehicle, issue_date=ISSUED, **fields):
    row = {
        "vehicle_id": vehicle["id"],
        "amount": Decimal("100"),
        "description": "Parking",
        "issue_date": issue_date,
        "due_date": issue_date + timedelta(days=30),
        "status": "unpaid",
        "created_by": "officer-1",
    }
    row.update(fields)
    return tables.seed("fines", **row)


class TestIssueFine:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.STAFF, Role.OFFICER])
    async def test_issue(self, service, act_as, vehicles, role):
        user_id = act_as(role)

        fine = await service.issue_fine(
            FineCreate(vehicle_id=vehicles["theirs"]["id"], amount=Decimal("75.50"), description=" Speeding "),
            now=ISSUED,
        )

        assert fine.status == FineStatus.UNPAID
        assert fine.issue_date == ISSUED
        assert fine.due_date == ISSUED + timedelta(days=30)
        assert fine.created_by == user_id
        assert fine.description == "Speeding"
        assert fine.payment_date is None
        assert fine.transaction_id is None

    @pytest.mark.asyncio
    async def test_owner_cannot_issue(self, service, act_as, vehicles):
        act_as(Role.OWNER, "owner-1")
        with pytest.raises(ScopeViolation):
            await service.issue_fine(
                FineCreate(vehicle_id=vehicles["mine"]["id"], amount=Decimal("1"), description="x")
            )

    @pytest.mark.asyncio
    async def test_unknown_vehicle(self, service, act_as, tables):
        act_as(Role.OFFICER)
        with pytest.raises(NotFoundError):
            await service.issue_fine(FineCreate(vehicle_id="missing", amount=Decimal("1"), description="x"))
        assert tables.rows("fines") == []


class TestListFines:

    @pytest.mark.asyncio
    async def test_owner_sees_own_vehicle_fines(self, service, act_as, tables, vehicles):
        mine = seed_fine(tables, vehicles["mine"])
        seed_fine(tables, vehicles["theirs"])
        act_as(Role.OWNER, "owner-1")

        fines = await service.list_fines()

        assert [f.id for f in fines] == [mine["id"]]

    @pytest.mark.asyncio
    async def test_staff_cannot_read_fines(self, service, act_as, tables, vehicles):
        seed_fine(tables, vehicles["mine"])
        act_as(Role.STAFF)

        with pytest.raises(ScopeViolation):
            await service.list_fines()

    @pytest.mark.asyncio
    async def test_malformed_row_raises_database_error(self, service, act_as, tables, vehicles):
        seed_fine(tables, vehicles["mine"], amount="a lot")
        act_as(Role.OWNER, "owner-1")

        with pytest.raises(DatabaseError):
            await service.list_fines()

    @pytest.mark.asyncio
    async def test_overdue_is_derived_at_read_time(self, service, act_as, tables, vehicles):
        overdue = seed_fine(tables, vehicles["mine"])
        current = seed_fine(tables, vehicles["mine"], issue_date=ISSUED + timedelta(days=20))
        paid = seed_fine(
            tables,
            vehicles["mine"],
            status="paid",
            payment_date=ISSUED,
            transaction_id="TX-1",
        )
        act_as(Role.OWNER, "owner-1")
        now = ISSUED + timedelta(days=35)

        overdue_fines = await service.list_fines(display_status=FineDisplayStatus.OVERDUE, now=now)
        unpaid_fines = await service.list_fines(display_status=FineDisplayStatus.UNPAID, now=now)
        paid_fines = await service.list_fines(display_status=FineDisplayStatus.PAID, now=now)

        assert [f.id for f in overdue_fines] == [overdue["id"]]
        assert [f.id for f in unpaid_fines] == [current["id"]]
        assert [f.id for f in paid_fines] == [paid["id"]]
        assert all(row["status"] in ("paid", "unpaid") for row in tables.rows("fines"))

    @pytest.mark.asyncio
    async def test_officer_lists_issued_fines(self, service, act_as, tables, vehicles):
        officer_id = act_as(Role.OFFICER)
        older = seed_fine(tables, vehicles["mine"], created_by=officer_id)
        newer = seed_fine(
            tables, vehicles["theirs"], created_by=officer_id, issue_date=ISSUED + timedelta(days=1)
        )
        seed_fine(tables, vehicles["theirs"], created_by="someone-else")

        fines = await service.list_issued_fines()

        assert [f.id for f in fines] == [newer["id"], older["id"]]
        assert len(await service.list_fines()) == 3


class TestPayFine:

    @pytest.mark.asyncio
    async def test_pay(self, service, act_as, tables, vehicles):
        fine = seed_fine(tables, vehicles["mine"])
        act_as(Role.OWNER, "owner-1")
        paid_at = ISSUED + timedelta(days=2)

        paid = await service.pay_fine(fine["id"], "owner-1", now=paid_at)

        assert paid.status == FineStatus.PAID
        assert paid.payment_date == paid_at
        assert paid.transaction_id.startswith("TX-")
        assert paid.display_status() == FineDisplayStatus.PAID

    @pytest.mark.asyncio
    async def test_overdue_fine_can_be_paid(self, service, act_as, tables, vehicles):
        fine = seed_fine(tables, vehicles["mine"])
        act_as(Role.OWNER, "owner-1")

        paid = await service.pay_fine(fine["id"], "owner-1", now=ISSUED + timedelta(days=90))

        assert paid.status == FineStatus.PAID

    @pytest.mark.asyncio
    async def test_legacy_stored_overdue_can_be_paid(self, service, act_as, tables, vehicles):
        fine = seed_fine(tables, vehicles["mine"], status="overdue")
        act_as(Role.OWNER, "owner-1")
        now = ISSUED + timedelta(days=90)

        (listed,) = await service.list_fines(display_status=FineDisplayStatus.OVERDUE, now=now)
        paid = await service.pay_fine(fine["id"], "owner-1", now=now)

        assert listed.id == fine["id"]
        assert paid.status == FineStatus.PAID
        assert paid.transaction_id
        (row,) = tables.rows("fines")
        assert row["status"] == "paid"
        assert row["payment_date"] == now

    @pytest.mark.asyncio
    async def test_second_payment_does_not_overwrite(self, service, act_as, tables, vehicles):
        fine = seed_fine(tables, vehicles["mine"])
        act_as(Role.OWNER, "owner-1")
        first = await service.pay_fine(fine["id"], "owner-1")

        with pytest.raises(FineAlreadyPaidError):
            await service.pay_fine(fine["id"], "owner-1")

        (row,) = tables.rows("fines")
        assert row["transaction_id"] == first.transaction_id

    @pytest.mark.asyncio
    async def test_concurrent_payment_detected(self, service, act_as, tables, vehicles):
        fine = seed_fine(tables, vehicles["mine"])
        act_as(Role.OWNER, "owner-1")
        original_get = service._get

        async def get_then_pay_elsewhere(caller, table, row_id):
            row = await original_get(caller, table, row_id)
            tables.tables["fines"][0].update(
                status="paid", payment_date=ISSUED, transaction_id="TX-OTHER"
            )
            return row

        service._get = get_then_pay_elsewhere

        with pytest.raises(FineAlreadyPaidError):
            await service.pay_fine(fine["id"], "owner-1")
        assert tables.rows("fines")[0]["transaction_id"] == "TX-OTHER"

    @pytest.mark.asyncio
    async def test_cannot_pay_someone_elses_fine(self, service, act_as, tables, vehicles):
        fine = seed_fine(tables, vehicles["theirs"])
        act_as(Role.OWNER, "owner-1")

        with pytest.raises(NotFoundError):
            await service.pay_fine(fine["id"], "owner-1")
        with pytest.raises(ScopeViolation):
            await service.pay_fine(fine["id"], "owner-2")
        assert tables.rows("fines")[0]["status"] == "unpaid"

    @pytest.mark.asyncio
    async def test_officer_cannot_pay(self, service, act_as, tables, vehicles):
        fine = seed_fine(tables, vehicles["mine"])
        officer_id = act_as(Role.OFFICER)

        with pytest.raises(ScopeViolation):
            await service.pay_fine(fine["id"], officer_id)


def test_transaction_ids_are_unique():
    ids = {generate_transaction_id() for _ in range(100)}
    assert len(ids) == 100
