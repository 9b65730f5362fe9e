"""
Dispatch Coordinator.

The emergency request state machine. Each operation validates the caller,
applies the state change through the Request Store and Driver Registry in
one transaction, commits, and only then pushes real-time notifications.
Pushes are best effort: a missed notification never rolls anything back.

    pending --accept--> accepted --> on_the_way --> nearby --> arrived --> completed
       |                   |
       +----cancel---------+----> cancelled
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from emergency_backend.app.core.exceptions import ConflictError, ValidationFailedError
from emergency_backend.app.core.guards import RequestPartyGuard
from emergency_backend.app.models.ambulance import Ambulance
from emergency_backend.app.models.dispatch_enums import RequestStatus, RELEASING_STATUSES
from emergency_backend.app.models.emergency_request import EmergencyRequest
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.realtime import events
from emergency_backend.app.realtime.notifier import Notifier
from emergency_backend.app.services.audit import AuditAction, log_request_event
from emergency_backend.app.services.driver_registry import DriverRegistry
from emergency_backend.app.services.request_store import (
    HistoryPage, Location, RequestParties, RequestStore, REQUEST_UNAVAILABLE, parse_status
)

logger = logging.getLogger(__name__)


def _point(latitude: float, longitude: float, address: str) -> events.AddressedPoint:
    return events.AddressedPoint(latitude=latitude, longitude=longitude, address=address)


class DispatchCoordinator:
    """
    Orchestrates request lifecycle operations for one unit of work.

    `actor` arguments are the identity dicts produced by
    `core.dependencies.authenticate_token` (user_id, sub, role).
    """

    def __init__(self, db: AsyncSession, notifier: Notifier):
        self.db = db
        self.notifier = notifier
        self.store = RequestStore(db)
        self.registry = DriverRegistry(db)
        self.guard = RequestPartyGuard()

    async def _audit(
        self,
        action: str,
        request_id: int,
        actor: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Record a lifecycle event for an operation that already committed.

        Returns False when the audit write failed; the session is rolled back
        and the caller re-reads what it still needs.
        """
        try:
            await log_request_event(self.db, action, request_id, actor, metadata=metadata)
        except Exception:
            logger.exception("Audit write %s for request %s failed", action, request_id)
            await self.db.rollback()
            return False
        return True

    async def create_request(
        self,
        actor: Dict[str, Any],
        pickup: Optional[Location],
        destination: Optional[Location],
        vehicle_type: Any,
        emergency_type: Optional[str],
        notes: Optional[str] = None,
    ) -> EmergencyRequest:
        """
        Persist a pending request and offer it to every available unit of
        the requested type that has a live connection. Availability is not
        touched.
        """
        request = await self.store.create(
            patient_id=actor["user_id"],
            pickup=pickup,
            destination=destination,
            vehicle_type=vehicle_type,
            emergency_type=emergency_type,
            notes=notes,
        )

        request_id = request.id
        audited = await self._audit(
            AuditAction.REQUEST_CREATED, request_id, actor,
            metadata={"vehicle_type": request.vehicle_type.value, "amount": request.amount},
        )
        if not audited:
            request = await self.store.get(request_id)

        units = await self.registry.find_available(
            request.vehicle_type,
            near=(request.pickup_latitude, request.pickup_longitude),
        )
        payload = events.NewRequestEvent(
            request_id=request.id,
            pickup_location=_point(request.pickup_latitude, request.pickup_longitude, request.pickup_address),
            destination=_point(
                request.destination_latitude, request.destination_longitude, request.destination_address
            ),
            vehicle_type=request.vehicle_type.value,
            emergency_type=request.emergency_type,
            notes=request.notes,
        )
        delivered = await self.notifier.broadcast(
            [unit.socket_id for unit in units], events.NEW_EMERGENCY_REQUEST, payload
        )

        logger.info(
            "Request %s offered to %s of %s available %s units",
            request.id, delivered, len(units), request.vehicle_type.value
        )
        return request

    async def accept_request(self, actor: Dict[str, Any], request_id: int) -> EmergencyRequest:
        """
        Claim a pending request for the calling driver.

        The driver row and the request row are each claimed with a
        conditional update in the same transaction; if either claim misses,
        both are rolled back.

        Raises:
            ResourceNotFoundError: request or driver does not exist
            ValidationFailedError: driver has no ambulance of the requested type
            ConflictError: request already claimed, or driver already busy
        """
        driver_id = actor["user_id"]
        request = await self.store.get(request_id)
        if request.status != RequestStatus.PENDING:
            raise ConflictError(REQUEST_UNAVAILABLE, details={"request_id": request_id})

        details = await self.registry.get_details(driver_id)
        ambulance = details.ambulance
        if ambulance is None:
            raise ValidationFailedError("Driver has no registered ambulance", field="ambulance")
        if ambulance.vehicle_type != request.vehicle_type:
            raise ValidationFailedError(
                f"Request needs a {request.vehicle_type.value} ambulance, "
                f"driver operates {ambulance.vehicle_type.value}",
                field="vehicle_type",
            )

        await self.registry.mark_unavailable(driver_id, request_id)
        await self.store.assign(request_id, driver_id, ambulance.id, commit=False)
        await self.db.commit()
        request = await self.store.get(request_id)

        payload = events.RequestAcceptedEvent(
            request_id=request.id,
            driver=events.AcceptedDriver(
                name=details.user.full_name,
                phone=details.user.phone or "",
                vehicle_details=events.VehicleDetails(
                    type=ambulance.vehicle_type.value,
                    name=ambulance.vehicle_name,
                    plate_number=ambulance.plate_number,
                ),
            ),
        )
        ambulance_id = ambulance.id
        if not await self._audit(
            AuditAction.REQUEST_ACCEPTED, request_id, actor, metadata={"ambulance_id": ambulance_id}
        ):
            request = await self.store.get(request_id)

        await self.notifier.notify_user(request.patient_id, events.REQUEST_ACCEPTED, payload)

        logger.info("Request %s accepted by driver %s", request.id, driver_id)
        return request

    async def update_status(
        self,
        actor: Dict[str, Any],
        request_id: int,
        new_status: Any,
        event: str = events.REQUEST_STATUS_UPDATE,
    ) -> EmergencyRequest:
        """
        Advance a request on behalf of its assigned driver.

        Completing or cancelling releases the driver and ambulance back into
        the pool in the same transaction. The patient is told with `event`.

        Raises:
            InsufficientPermissionsError: caller is not the assigned driver
            ValidationFailedError: unknown status value
            InvalidTransitionError: transition not allowed from the current status
            ConflictError: status changed concurrently
        """
        driver_id = actor["user_id"]
        request = await self.store.get(request_id)
        self.guard.enforce_assigned_driver(request, driver_id)

        target = parse_status(new_status)
        releasing = target in RELEASING_STATUSES

        request = await self.store.update_status(request_id, target, commit=not releasing)
        if releasing:
            await self.registry.mark_available(driver_id)
            await self.db.commit()
            request = await self.store.get(request_id)

        action = (
            AuditAction.REQUEST_CANCELLED if target == RequestStatus.CANCELLED
            else AuditAction.REQUEST_STATUS_CHANGED
        )
        if not await self._audit(action, request_id, actor, metadata={"status": target.value}):
            request = await self.store.get(request_id)

        await self.notifier.notify_user(
            request.patient_id, event,
            events.RequestStatusEvent(request_id=request.id, status=target.value),
        )

        logger.info("Request %s moved to %s by driver %s", request.id, target.value, driver_id)
        return request

    async def cancel_request(self, actor: Dict[str, Any], request_id: int) -> EmergencyRequest:
        """
        Patient withdraws a request that is still pending or accepted.

        A driver who already accepted is released and told.
        """
        request = await self.store.get(request_id)
        self.guard.enforce_patient(request, actor, "cancel this request")

        driver_id = request.driver_id
        request = await self.store.update_status(request_id, RequestStatus.CANCELLED, commit=False)
        if driver_id is not None:
            await self.registry.mark_available(driver_id)
        await self.db.commit()
        request = await self.store.get(request_id)

        if not await self._audit(
            AuditAction.REQUEST_CANCELLED, request_id, actor, metadata={"released_driver_id": driver_id}
        ):
            request = await self.store.get(request_id)

        if driver_id is not None:
            await self.notifier.notify_user(
                driver_id, events.REQUEST_STATUS_UPDATE,
                events.RequestStatusEvent(request_id=request.id, status=request.status.value),
            )

        logger.info("Request %s cancelled by patient %s", request.id, actor["user_id"])
        return request

    async def update_payment(self, actor: Dict[str, Any], request_id: int) -> EmergencyRequest:
        """Mark a request paid. Only its patient may; no notification is sent."""
        request = await self.store.get(request_id)
        self.guard.enforce_patient(request, actor, "update payment for this request")

        request = await self.store.mark_paid(request_id)
        if not await self._audit(
            AuditAction.PAYMENT_COMPLETED, request_id, actor, metadata={"amount": request.amount}
        ):
            request = await self.store.get(request_id)
        return request

    async def update_location(self, driver_id: int, latitude: float, longitude: float) -> Ambulance:
        """
        Record the driver's ambulance position and, if they are on a request,
        forward it to that request's patient.
        """
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise ValidationFailedError("Coordinates are out of range", field="location")

        ambulance = await self.registry.update_location(driver_id, latitude, longitude)
        driver = await self.registry.get_driver(driver_id)

        if driver.current_request_id is not None:
            request = await self.store.get(driver.current_request_id)
            await self.notifier.notify_user(
                request.patient_id, events.DRIVER_LOCATION_UPDATE,
                events.DriverLocationEvent(
                    request_id=request.id,
                    location=events.GeoPoint(latitude=latitude, longitude=longitude),
                ),
            )
        return ambulance

    async def get_request(self, actor: Dict[str, Any], request_id: int) -> RequestParties:
        """Request details for its patient, its assigned driver, or an admin."""
        parties = await self.store.get_with_parties(request_id)
        self.guard.enforce_view(parties.request, actor)
        return parties

    async def history(self, actor: Dict[str, Any], page: int, limit: int) -> HistoryPage:
        return await self.store.history_for(actor["user_id"], UserRole(actor["role"]), page, limit)

