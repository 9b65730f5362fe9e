"""
Emergency Request API Endpoints.

Patients raise requests, drivers claim and advance them. All state changes
go through the DispatchCoordinator; real-time pushes happen after commit.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from emergency_backend.app.db.session import get_db
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.core.config import settings
from emergency_backend.app.core.guards import require_role
from emergency_backend.app.realtime.notifier import Notifier
from emergency_backend.app.realtime.server import get_notifier
from emergency_backend.app.schemas.emergency import (
    Envelope, EmergencyRequestCreate, EmergencyRequestResponse, EmergencyRequestDetail,
    StatusUpdate, Pagination, RequestHistory
)
from emergency_backend.app.services.dispatch_coordinator import DispatchCoordinator

router = APIRouter(prefix="/emergency", tags=["Emergency Requests"])

require_patient = require_role([UserRole.PATIENT])
require_driver = require_role([UserRole.DRIVER])
require_any_party = require_role([UserRole.PATIENT, UserRole.DRIVER, UserRole.ADMIN])


def get_coordinator(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> DispatchCoordinator:
    return DispatchCoordinator(db, notifier)


@router.post(
    "/request",
    response_model=Envelope[EmergencyRequestResponse],
    status_code=status.HTTP_201_CREATED
)
async def create_emergency_request(
    body: EmergencyRequestCreate,
    current_user: dict = Depends(require_patient),
    coordinator: DispatchCoordinator = Depends(get_coordinator)
):
    """
    Raise a new emergency request (Patient only).

    The fare is fixed from the vehicle type. Every available driver of
    that type with a live connection is offered the request.
    """
    request = await coordinator.create_request(
        current_user,
        pickup=body.pickup_location.to_location(),
        destination=body.destination.to_location(),
        vehicle_type=body.vehicle_type,
        emergency_type=body.emergency_type,
        notes=body.notes,
    )
    return Envelope(data=EmergencyRequestResponse.from_model(request))


@router.post("/request/{request_id}/accept", response_model=Envelope[EmergencyRequestResponse])
async def accept_emergency_request(
    request_id: int = Path(..., description="Emergency request ID"),
    current_user: dict = Depends(require_driver),
    coordinator: DispatchCoordinator = Depends(get_coordinator)
):
    """
    Claim a pending request (Driver only).

    Exactly one driver can win; everyone else gets 409.
    """
    request = await coordinator.accept_request(current_user, request_id)
    return Envelope(data=EmergencyRequestResponse.from_model(request))


@router.put("/request/{request_id}/status", response_model=Envelope[EmergencyRequestResponse])
async def update_emergency_status(
    body: StatusUpdate,
    request_id: int = Path(..., description="Emergency request ID"),
    current_user: dict = Depends(require_driver),
    coordinator: DispatchCoordinator = Depends(get_coordinator)
):
    """
    Advance the request (assigned Driver only).

    on_the_way -> nearby -> arrived -> completed. Completing releases the
    driver and ambulance.
    """
    request = await coordinator.update_status(current_user, request_id, body.status)
    return Envelope(data=EmergencyRequestResponse.from_model(request))


@router.post("/request/{request_id}/cancel", response_model=Envelope[EmergencyRequestResponse])
async def cancel_emergency_request(
    request_id: int = Path(..., description="Emergency request ID"),
    current_user: dict = Depends(require_patient),
    coordinator: DispatchCoordinator = Depends(get_coordinator)
):
    """Withdraw a pending or accepted request (owning Patient only)."""
    request = await coordinator.cancel_request(current_user, request_id)
    return Envelope(data=EmergencyRequestResponse.from_model(request))


@router.put("/request/{request_id}/payment", response_model=Envelope[EmergencyRequestResponse])
async def update_emergency_payment(
    request_id: int = Path(..., description="Emergency request ID"),
    current_user: dict = Depends(require_patient),
    coordinator: DispatchCoordinator = Depends(get_coordinator)
):
    """Mark the request as paid (owning Patient only)."""
    request = await coordinator.update_payment(current_user, request_id)
    return Envelope(data=EmergencyRequestResponse.from_model(request))


@router.get("/request/{request_id}", response_model=Envelope[EmergencyRequestDetail])
async def get_emergency_request(
    request_id: int = Path(..., description="Emergency request ID"),
    current_user: dict = Depends(require_any_party),
    coordinator: DispatchCoordinator = Depends(get_coordinator)
):
    """Request details with driver and ambulance (its Patient, its Driver, or Admin)."""
    parties = await coordinator.get_request(current_user, request_id)
    return Envelope(data=EmergencyRequestDetail.from_parties(parties))


@router.get("/requests/history", response_model=Envelope[RequestHistory])
async def get_request_history(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(
        settings.history_default_limit, ge=1, le=settings.history_max_limit, description="Items per page"
    ),
    current_user: dict = Depends(require_role([UserRole.PATIENT, UserRole.DRIVER])),
    coordinator: DispatchCoordinator = Depends(get_coordinator)
):
    """
    Past and current requests of the caller, newest first.

    Patients see the requests they raised; drivers see the ones they hold
    or completed.
    """
    history = await coordinator.history(current_user, page, limit)
    return Envelope(data=RequestHistory(
        requests=[EmergencyRequestResponse.from_model(r) for r in history.items],
        pagination=Pagination(
            page=history.page,
            limit=history.limit,
            total=history.total,
            total_pages=history.total_pages,
            has_next_page=history.has_next_page,
            has_prev_page=history.has_prev_page,
        ),
    ))
