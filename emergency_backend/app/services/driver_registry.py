"""
Driver/Ambulance Registry.

Answers "which units of vehicle type X can take a request right now" and
maintains the availability flags and persisted connection ids. Driver and
ambulance availability always change together, in the same transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from emergency_backend.app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationFailedError
from emergency_backend.app.models.ambulance import Ambulance
from emergency_backend.app.models.driver import Driver
from emergency_backend.app.models.user import User
from emergency_backend.app.models.dispatch_enums import VehicleType
from emergency_backend.app.services.geo import Coordinates, distance_or_none

logger = logging.getLogger(__name__)


@dataclass
class AvailableUnit:
    """An available driver, their ambulance and their live connection (if any)."""
    driver_id: int
    ambulance_id: int
    vehicle_type: VehicleType
    socket_id: Optional[str]
    distance_km: Optional[float] = None


@dataclass
class DriverDetails:
    driver: Driver
    user: User
    ambulance: Optional[Ambulance]


class DriverRegistry:
    """Queries and availability updates for drivers and their ambulances."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_available(self, vehicle_type: VehicleType, near: Optional[Coordinates] = None) -> List[AvailableUnit]:
        """
        All ambulances of `vehicle_type` whose ambulance and driver are both
        available. Units without a live connection are included; callers
        decide whether to skip them.

        When `near` is given, units are ordered nearest first and units with
        no known position come last.
        """
        result = await self.db.execute(
            select(Ambulance, Driver.socket_id)
            .join(Driver, Driver.id == Ambulance.driver_id)
            .join(User, User.id == Driver.id)
            .where(
                Ambulance.vehicle_type == vehicle_type,
                Ambulance.is_available.is_(True),
                Driver.is_available.is_(True),
                Driver.current_request_id.is_(None),
                User.is_active.is_(True),
            )
            .order_by(Ambulance.id)
        )

        units = [
            AvailableUnit(
                driver_id=ambulance.driver_id,
                ambulance_id=ambulance.id,
                vehicle_type=ambulance.vehicle_type,
                socket_id=socket_id,
                distance_km=distance_or_none(near, ambulance.current_latitude, ambulance.current_longitude),
            )
            for ambulance, socket_id in result.all()
        ]

        if near is not None:
            units.sort(key=lambda u: (u.distance_km is None, u.distance_km or 0.0))

        return units

    async def get_driver(self, driver_id: int) -> Driver:
        driver = await self.db.get(Driver, driver_id, populate_existing=True)
        if driver is None:
            raise ResourceNotFoundError("Driver", driver_id)
        return driver

    async def get_ambulance_for(self, driver_id: int) -> Ambulance:
        result = await self.db.execute(
            select(Ambulance)
            .where(Ambulance.driver_id == driver_id)
            .execution_options(populate_existing=True)
        )
        ambulance = result.scalar_one_or_none()
        if ambulance is None:
            raise ResourceNotFoundError("Ambulance for driver", driver_id)
        return ambulance

    async def get_details(self, driver_id: int) -> DriverDetails:
        """Driver row, its user identity and its ambulance."""
        driver = await self.get_driver(driver_id)
        user = await self.db.get(User, driver_id)
        result = await self.db.execute(select(Ambulance).where(Ambulance.driver_id == driver_id))
        return DriverDetails(driver=driver, user=user, ambulance=result.scalar_one_or_none())

    async def update_profile(
        self,
        driver_id: int,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
        license_number: Optional[str] = None,
        vehicle_name: Optional[str] = None,
        plate_number: Optional[str] = None,
    ) -> DriverDetails:
        """
        Change the driver's contact details and vehicle identity. Fields
        left as None are not touched.

        Availability, the held request and the vehicle type are not editable
        here; only the dispatch flow changes them.
        """
        details = await self.get_details(driver_id)

        if (vehicle_name is not None or plate_number is not None) and details.ambulance is None:
            raise ValidationFailedError("Driver has no registered ambulance", field="ambulance")

        if full_name is not None:
            details.user.full_name = full_name
        if phone is not None:
            details.user.phone = phone
        if license_number is not None:
            details.driver.license_number = license_number
        if vehicle_name is not None:
            details.ambulance.vehicle_name = vehicle_name
        if plate_number is not None:
            details.ambulance.plate_number = plate_number

        await self.db.commit()
        logger.info("Driver %s updated their profile", driver_id)
        return details

    async def list_details(self, offset: int = 0, limit: int = 50) -> List[DriverDetails]:
        result = await self.db.execute(
            select(Driver, User, Ambulance)
            .join(User, User.id == Driver.id)
            .outerjoin(Ambulance, Ambulance.driver_id == Driver.id)
            .order_by(Driver.id)
            .offset(offset)
            .limit(limit)
        )
        return [DriverDetails(driver=d, user=u, ambulance=a) for d, u, a in result.all()]

    async def mark_unavailable(self, driver_id: int, request_id: int) -> None:
        """
        Take a driver and their ambulance out of the pool for `request_id`.

        Compare-and-swap on the driver row: only succeeds while the driver
        is available and holds no request. Does not commit; the caller
        commits together with the request claim.

        Raises:
            ConflictError: driver already holds an assignment
        """
        result = await self.db.execute(
            update(Driver)
            .where(
                Driver.id == driver_id,
                Driver.is_available.is_(True),
                Driver.current_request_id.is_(None),
            )
            .values(is_available=False, current_request_id=request_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise ConflictError(
                "Driver already has an active request",
                details={"driver_id": driver_id},
            )

        await self.db.execute(
            update(Ambulance)
            .where(Ambulance.driver_id == driver_id)
            .values(is_available=False)
            .execution_options(synchronize_session=False)
        )

    async def mark_available(self, driver_id: int) -> None:
        """
        Return a driver and their ambulance to the pool and clear the
        current request. Does not commit.
        """
        await self.db.execute(
            update(Driver)
            .where(Driver.id == driver_id)
            .values(is_available=True, current_request_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(Ambulance)
            .where(Ambulance.driver_id == driver_id)
            .values(is_available=True)
            .execution_options(synchronize_session=False)
        )

    async def set_connection(self, driver_id: int, socket_id: str) -> None:
        """Persist the driver's live connection id."""
        await self.db.execute(
            update(Driver)
            .where(Driver.id == driver_id)
            .values(socket_id=socket_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def clear_connection(self, socket_id: str) -> Optional[int]:
        """
        Reverse lookup by connection id and clear it.

        Returns:
            The driver id whose connection was cleared, or None
        """
        result = await self.db.execute(select(Driver.id).where(Driver.socket_id == socket_id))
        driver_id = result.scalar_one_or_none()
        if driver_id is None:
            return None

        # Guarded so a newer connection set in the meantime is left alone
        await self.db.execute(
            update(Driver)
            .where(Driver.id == driver_id, Driver.socket_id == socket_id)
            .values(socket_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return driver_id

    async def update_location(self, driver_id: int, latitude: float, longitude: float) -> Ambulance:
        """Overwrite the ambulance's last known position."""
        result = await self.db.execute(
            update(Ambulance)
            .where(Ambulance.driver_id == driver_id)
            .values(
                current_latitude=latitude,
                current_longitude=longitude,
                location_updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise ResourceNotFoundError("Ambulance for driver", driver_id)
        await self.db.commit()
        return await self.get_ambulance_for(driver_id)
