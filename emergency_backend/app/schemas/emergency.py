"""
Emergency request schemas.

Request bodies for the dispatch endpoints and the response shapes built
from EmergencyRequest rows. Successful responses are wrapped as
{"success": true, "data": ...}.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from emergency_backend.app.models.dispatch_enums import VehicleType, RequestStatus, PaymentStatus
from emergency_backend.app.services.request_store import Location, RequestParties

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class LocationIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str = Field(..., min_length=1, max_length=255)

    def to_location(self) -> Location:
        return Location(latitude=self.latitude, longitude=self.longitude, address=self.address)


class LocationOut(BaseModel):
    latitude: float
    longitude: float
    address: str


class EmergencyRequestCreate(BaseModel):
    """Body of POST /emergency/request."""
    pickup_location: LocationIn
    destination: LocationIn
    vehicle_type: VehicleType = Field(..., description="AC, ICU or VIP")
    emergency_type: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)


class StatusUpdate(BaseModel):
    """
    Body of PUT /emergency/request/{id}/status.

    Left unvalidated so that an unauthorized caller gets 403 whatever value
    (or type) they send; the value is checked against RequestStatus only
    after the assigned-driver check.
    """
    status: Any = None


class DriverSummary(BaseModel):
    id: int
    full_name: str
    phone: Optional[str] = None


class AmbulanceSummary(BaseModel):
    id: int
    vehicle_type: VehicleType
    vehicle_name: str
    plate_number: str
    current_latitude: Optional[float] = None
    current_longitude: Optional[float] = None

    class Config:
        from_attributes = True


class EmergencyRequestResponse(BaseModel):
    id: int
    patient_id: int
    driver_id: Optional[int] = None
    ambulance_id: Optional[int] = None
    pickup_location: LocationOut
    destination: LocationOut
    vehicle_type: VehicleType
    amount: int
    status: RequestStatus
    payment_status: PaymentStatus
    emergency_type: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, request) -> "EmergencyRequestResponse":
        return cls(
            id=request.id,
            patient_id=request.patient_id,
            driver_id=request.driver_id,
            ambulance_id=request.ambulance_id,
            pickup_location=LocationOut(
                latitude=request.pickup_latitude,
                longitude=request.pickup_longitude,
                address=request.pickup_address,
            ),
            destination=LocationOut(
                latitude=request.destination_latitude,
                longitude=request.destination_longitude,
                address=request.destination_address,
            ),
            vehicle_type=request.vehicle_type,
            amount=request.amount,
            status=request.status,
            payment_status=request.payment_status,
            emergency_type=request.emergency_type,
            notes=request.notes,
            created_at=request.created_at,
            updated_at=request.updated_at,
            accepted_at=request.accepted_at,
            completed_at=request.completed_at,
            cancelled_at=request.cancelled_at,
        )


class EmergencyRequestDetail(EmergencyRequestResponse):
    """A request with its driver and ambulance filled in."""
    driver: Optional[DriverSummary] = None
    ambulance: Optional[AmbulanceSummary] = None

    @classmethod
    def from_parties(cls, parties: RequestParties) -> "EmergencyRequestDetail":
        base = EmergencyRequestResponse.from_model(parties.request)
        driver = None
        if parties.driver is not None:
            driver = DriverSummary(
                id=parties.driver.id, full_name=parties.driver.full_name, phone=parties.driver.phone
            )
        ambulance = AmbulanceSummary.model_validate(parties.ambulance) if parties.ambulance else None
        return cls(**base.model_dump(), driver=driver, ambulance=ambulance)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class RequestHistory(BaseModel):
    requests: List[EmergencyRequestResponse]
    pagination: Pagination
