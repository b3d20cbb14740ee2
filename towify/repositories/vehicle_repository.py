"""Repository for the ``vehicles`` table."""

from typing import List, Sequence

from towify.core.scope import Table
from towify.database.table_client import Filter, Order
from towify.repositories.base_repository import BaseRepository
from towify.schemas.vehicle import Vehicle, normalize_plate


class VehicleRepository(BaseRepository[Vehicle]):
    table = Table.VEHICLES
    model = Vehicle

    async def find_by_exact_plate(self, plate: str, filters: Sequence[Filter] = ()) -> List[Vehicle]:
        return await self.find([Filter.eq("license_plate", normalize_plate(plate)), *filters])

    async def find_by_plate_fragment(self, plate: str, filters: Sequence[Filter] = ()) -> List[Vehicle]:
        """Case-insensitive substring match, oldest first so "first match" is stable."""
        return await self.find(
            [Filter.contains("license_plate", normalize_plate(plate)), *filters],
            order=[Order("created_at"), Order("license_plate")],
        )
