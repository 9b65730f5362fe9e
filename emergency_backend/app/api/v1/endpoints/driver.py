"""
Driver API Endpoints.

The calling driver's own profile: who they are, their ambulance, whether
they are available and connected. Drivers may edit their contact details
and vehicle identity; availability is owned by the dispatch flow.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from emergency_backend.app.db.session import get_db
from emergency_backend.app.models.ambulance import Ambulance
from emergency_backend.app.models.driver import Driver
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.core.guards import require_role
from emergency_backend.app.schemas.driver import DriverProfile, DriverProfileUpdate
from emergency_backend.app.schemas.emergency import Envelope
from emergency_backend.app.services.driver_registry import DriverRegistry

router = APIRouter(prefix="/driver", tags=["Driver"])


@router.get("/profile", response_model=Envelope[DriverProfile])
async def get_driver_profile(
    current_user: dict = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db)
):
    """Profile of the calling driver, including whether they are connected."""
    details = await DriverRegistry(db).get_details(current_user["user_id"])
    return Envelope(data=DriverProfile.from_details(details))


@router.put("/profile", response_model=Envelope[DriverProfile])
async def update_driver_profile(
    changes: DriverProfileUpdate,
    current_user: dict = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Update name, phone, license number, vehicle name or plate number.

    License and plate numbers stay unique across drivers.
    """
    driver_id = current_user["user_id"]

    if changes.license_number is not None:
        result = await db.execute(
            select(Driver.id).where(Driver.license_number == changes.license_number, Driver.id != driver_id)
        )
        if result.scalar_one_or_none() is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="License number already registered"
            )

    if changes.plate_number is not None:
        result = await db.execute(
            select(Ambulance.id).where(
                Ambulance.plate_number == changes.plate_number, Ambulance.driver_id != driver_id
            )
        )
        if result.scalar_one_or_none() is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Plate number already registered"
            )

    details = await DriverRegistry(db).update_profile(driver_id, **changes.model_dump(exclude_none=True))
    return Envelope(data=DriverProfile.from_details(details))
