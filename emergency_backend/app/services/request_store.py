"""
Request Store.

Durable persistence of emergency requests. Every state-changing write is a
conditional UPDATE guarded on the status it expects to replace, so two
concurrent writers can never both succeed.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from emergency_backend.app.core.exceptions import (
    ConflictError, InvalidTransitionError, ResourceNotFoundError, ValidationFailedError
)
from emergency_backend.app.models.ambulance import Ambulance
from emergency_backend.app.models.emergency_request import EmergencyRequest
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.models.user import User
from emergency_backend.app.models.dispatch_enums import (
    VehicleType, RequestStatus, PaymentStatus, VEHICLE_BASE_AMOUNT, is_legal_transition
)

logger = logging.getLogger(__name__)

REQUEST_UNAVAILABLE = "Request is no longer available"


@dataclass
class Location:
    """A point with a free-text address."""
    latitude: float
    longitude: float
    address: str


@dataclass
class HistoryPage:
    items: List[EmergencyRequest]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


@dataclass
class RequestParties:
    """A request with the people and vehicle attached to it."""
    request: EmergencyRequest
    patient: Optional[User]
    driver: Optional[User]
    ambulance: Optional[Ambulance]


def parse_vehicle_type(value: Any) -> VehicleType:
    """Coerce to VehicleType or raise ValidationFailedError."""
    if isinstance(value, VehicleType):
        return value
    try:
        return VehicleType(value)
    except ValueError:
        allowed = ", ".join(v.value for v in VehicleType)
        raise ValidationFailedError(
            f"Unknown vehicle type '{value}'. Allowed: {allowed}", field="vehicle_type"
        )


def parse_status(value: Any) -> RequestStatus:
    """Coerce to RequestStatus or raise ValidationFailedError."""
    if isinstance(value, RequestStatus):
        return value
    try:
        return RequestStatus(value)
    except (ValueError, TypeError):
        raise ValidationFailedError(f"Unknown status '{value}'", field="status")


def _require_location(location: Optional[Location], field: str) -> Location:
    if location is None:
        raise ValidationFailedError(f"{field} is required", field=field)
    if location.latitude is None or location.longitude is None:
        raise ValidationFailedError(f"{field} coordinates are required", field=field)
    if not (-90 <= location.latitude <= 90 and -180 <= location.longitude <= 180):
        raise ValidationFailedError(f"{field} coordinates are out of range", field=field)
    if not location.address or not location.address.strip():
        raise ValidationFailedError(f"{field} address is required", field=field)
    return location


class RequestStore:
    """Persistence operations for EmergencyRequest rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        patient_id: int,
        pickup: Optional[Location],
        destination: Optional[Location],
        vehicle_type: Any,
        emergency_type: Optional[str],
        notes: Optional[str] = None,
    ) -> EmergencyRequest:
        """
        Persist a new pending request.

        amount is looked up from the static fare table here and never
        recomputed afterwards.

        Raises:
            ValidationFailedError: missing field or unknown vehicle type
        """
        if patient_id is None:
            raise ValidationFailedError("patient is required", field="patient")
        pickup = _require_location(pickup, "pickup_location")
        destination = _require_location(destination, "destination")
        vehicle = parse_vehicle_type(vehicle_type)
        if not emergency_type or not emergency_type.strip():
            raise ValidationFailedError("emergency_type is required", field="emergency_type")

        request = EmergencyRequest(
            patient_id=patient_id,
            pickup_latitude=pickup.latitude,
            pickup_longitude=pickup.longitude,
            pickup_address=pickup.address.strip(),
            destination_latitude=destination.latitude,
            destination_longitude=destination.longitude,
            destination_address=destination.address.strip(),
            vehicle_type=vehicle,
            amount=VEHICLE_BASE_AMOUNT[vehicle],
            status=RequestStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            emergency_type=emergency_type.strip(),
            notes=notes,
        )

        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)

        logger.info(
            "Emergency request %s created by patient %s (%s, amount=%s)",
            request.id, patient_id, vehicle.value, request.amount
        )
        return request

    async def get(self, request_id: int) -> EmergencyRequest:
        """Fetch a request, always reading the latest committed row."""
        request = await self.db.get(EmergencyRequest, request_id, populate_existing=True)
        if request is None:
            raise ResourceNotFoundError("Emergency request", request_id)
        return request

    async def get_with_parties(self, request_id: int) -> RequestParties:
        request = await self.get(request_id)
        patient = await self.db.get(User, request.patient_id)
        driver = await self.db.get(User, request.driver_id) if request.driver_id else None
        ambulance = await self.db.get(Ambulance, request.ambulance_id) if request.ambulance_id else None
        return RequestParties(request=request, patient=patient, driver=driver, ambulance=ambulance)

    async def assign(self, request_id: int, driver_id: int, ambulance_id: int, commit: bool = True) -> EmergencyRequest:
        """
        Claim a pending request for a driver.

        Compare-and-swap: the UPDATE only matches while status is still
        pending, so of any number of concurrent callers exactly one sees
        rowcount == 1.

        Raises:
            ResourceNotFoundError: request does not exist
            ConflictError: request is no longer pending
        """
        stmt = (
            update(EmergencyRequest)
            .where(
                EmergencyRequest.id == request_id,
                EmergencyRequest.status == RequestStatus.PENDING,
            )
            .values(
                status=RequestStatus.ACCEPTED,
                driver_id=driver_id,
                ambulance_id=ambulance_id,
                accepted_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        if result.rowcount != 1:
            await self._raise_missing_or_conflict(request_id)

        if commit:
            await self.db.commit()
        return await self.get(request_id)

    async def update_status(
        self,
        request_id: int,
        new_status: Any,
        commit: bool = True,
    ) -> EmergencyRequest:
        """
        Move a request to `new_status` if the transition table allows it.

        Moving into pending/accepted is reserved for create/assign, which
        also attach the driver and ambulance. Cancelling detaches them.

        Raises:
            ValidationFailedError: status is not a member of the enum
            InvalidTransitionError: transition is not legal from the current status
            ConflictError: status changed between read and write
        """
        target = parse_status(new_status)
        request = await self.get(request_id)
        current = request.status

        if target == RequestStatus.ACCEPTED or not is_legal_transition(current, target):
            raise InvalidTransitionError(current.value, target.value)

        values = {"status": target}
        now = datetime.now(timezone.utc)
        if target == RequestStatus.COMPLETED:
            values["completed_at"] = now
        elif target == RequestStatus.CANCELLED:
            values.update(cancelled_at=now, driver_id=None, ambulance_id=None)

        stmt = (
            update(EmergencyRequest)
            .where(EmergencyRequest.id == request_id, EmergencyRequest.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            raise ConflictError(
                "Request status changed concurrently, reload and retry",
                details={"request_id": request_id, "expected": current.value},
            )

        if commit:
            await self.db.commit()
        return await self.get(request_id)

    async def mark_paid(self, request_id: int) -> EmergencyRequest:
        """Set payment_status=completed. Idempotent."""
        await self.db.execute(
            update(EmergencyRequest)
            .where(EmergencyRequest.id == request_id)
            .values(payment_status=PaymentStatus.COMPLETED)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return await self.get(request_id)

    async def history_for(self, user_id: int, role: UserRole, page: int, limit: int) -> HistoryPage:
        """
        Requests the user took part in, newest first.

        Patients see requests they created; drivers see requests they hold
        or held.
        """
        if role == UserRole.DRIVER:
            condition = EmergencyRequest.driver_id == user_id
        elif role == UserRole.PATIENT:
            condition = EmergencyRequest.patient_id == user_id
        else:
            condition = or_(EmergencyRequest.patient_id == user_id, EmergencyRequest.driver_id == user_id)

        total_result = await self.db.execute(select(func.count(EmergencyRequest.id)).where(condition))
        total = total_result.scalar()

        result = await self.db.execute(
            select(EmergencyRequest)
            .where(condition)
            .order_by(EmergencyRequest.created_at.desc(), EmergencyRequest.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return HistoryPage(items=list(result.scalars().all()), page=page, limit=limit, total=total)

    async def _raise_missing_or_conflict(self, request_id: int):
        await self.db.rollback()
        exists = await self.db.execute(select(EmergencyRequest.id).where(EmergencyRequest.id == request_id))
        if exists.scalar_one_or_none() is None:
            raise ResourceNotFoundError("Emergency request", request_id)
        raise ConflictError(REQUEST_UNAVAILABLE, details={"request_id": request_id})
