"""Vehicle access and plate search."""

from typing import List, Optional

from towify.core.exceptions import NotFoundError, ValidationError
from towify.core.scope import Action, Table
from towify.database.table_client import Filter, Order
from towify.schemas.results import AmbiguousMatchWarning, PlateSearchResult
from towify.schemas.vehicle import Vehicle, VehicleCreate, VehicleUpdate, normalize_plate
from towify.services.scoped_service import ScopedService
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)


class VehicleService(ScopedService):
    """Vehicles visible to the caller.

    Owners see and manage their own vehicles. Staff and officers read every
    vehicle; staff may also register vehicles with no known owner while
    recording a tow.
    """

    async def list_owned_vehicles(self, user_id: str) -> List[Vehicle]:
        """List vehicles owned by ``user_id``, which must be the caller.

        Raises:
            ScopeViolation: If ``user_id`` is not the signed-in user
        """
        caller = self._caller()
        self._require_self(caller, user_id)
        return await self._find(
            caller,
            Table.VEHICLES,
            [Filter.eq("owner_id", user_id)],
            order=[Order("created_at", ascending=False)],
        )

    async def list_vehicles(self) -> List[Vehicle]:
        caller = self._caller()
        return await self._find(caller, Table.VEHICLES, order=[Order("created_at", ascending=False)])

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        return await self._get(self._caller(), Table.VEHICLES, vehicle_id)

    async def add_vehicle(self, data: VehicleCreate) -> Vehicle:
        """Register a vehicle owned by the caller."""
        caller = self._caller()
        payload = data.model_dump()
        payload["owner_id"] = caller.user_id
        vehicle = await self._create(caller, Table.VEHICLES, payload)
        LOGGER.info(f"Vehicle {vehicle.license_plate} added", extra={"user_id": caller.user_id})
        return vehicle

    async def update_vehicle(self, vehicle_id: str, data: VehicleUpdate) -> Vehicle:
        values = data.model_dump(exclude_none=True)
        if not values:
            raise ValidationError("No vehicle fields to update")
        return await self._update(self._caller(), Table.VEHICLES, vehicle_id, values)

    async def delete_vehicle(self, vehicle_id: str) -> None:
        """Delete one of the caller's vehicles.

        Raises:
            NotFoundError: If the vehicle does not exist or belongs to someone else
        """
        caller = self._caller()
        scope = await self._scope(caller, Table.VEHICLES, Action.DELETE)
        deleted = await self.vehicles.delete([Filter.eq("id", vehicle_id), *scope.filters])
        scope.check(deleted)
        if not deleted:
            raise NotFoundError(f"No vehicles row {vehicle_id}")
        LOGGER.info(f"Vehicle {vehicle_id} deleted", extra={"user_id": caller.user_id})

    async def search_vehicle_by_plate(self, plate: str) -> PlateSearchResult:
        """Find the vehicle for a plate.

        An exact match on the normalized plate wins. Otherwise a
        case-insensitive substring search runs; if it finds several vehicles
        the first is used and the result carries a warning.

        Raises:
            ValidationError: If the plate is blank
        """
        normalized = normalize_plate(plate or "")
        if not normalized:
            raise ValidationError("Please enter a license plate number")
        caller = self._caller()
        scope = await self._scope(caller, Table.VEHICLES, Action.READ)

        exact = await self.vehicles.find_by_exact_plate(normalized, scope.filters)
        scope.check(exact)
        if exact:
            return PlateSearchResult(vehicle=exact[0], matches=exact, exact=True)

        matches = await self.vehicles.find_by_plate_fragment(normalized, scope.filters)
        scope.check(matches)
        if not matches:
            LOGGER.info(f"No vehicle found for plate {normalized}")
            return PlateSearchResult()

        warning = None
        if len(matches) > 1:
            warning = AmbiguousMatchWarning(
                plate=normalized,
                match_count=len(matches),
                used_vehicle_id=matches[0].id,
                candidate_plates=[v.license_plate for v in matches],
            )
            LOGGER.warning(warning.message, extra={"candidates": warning.candidate_plates})
        return PlateSearchResult(vehicle=matches[0], matches=matches, warning=warning)

    async def register_unknown_vehicle(
        self,
        plate: str,
        make: Optional[str] = None,
        model: Optional[str] = None,
        color: Optional[str] = None,
        registered_name: Optional[str] = None,
    ) -> Vehicle:
        """Register a vehicle with no known owner. Missing details become "unknown"."""
        caller = self._caller()
        if not normalize_plate(plate or ""):
            raise ValidationError("Please enter a license plate number")
        data = VehicleCreate(
            license_plate=plate,
            make=make,
            model=model,
            color=color,
            registered_name=registered_name or None,
        )
        payload = data.model_dump()
        payload["owner_id"] = None
        vehicle = await self._create(caller, Table.VEHICLES, payload)
        LOGGER.info(f"Registered unowned vehicle {vehicle.license_plate}")
        return vehicle
