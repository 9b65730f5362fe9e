"""
Socket.IO Event Models.

Event names and payload shapes for the real-time channel. Payloads go over
the wire in camelCase (requestId, vehicleType) because that is what the
browser and mobile clients speak; Python code uses snake_case.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Client -> server
JOIN = "join"
UPDATE_LOCATION = "update-location"
UPDATE_STATUS = "update-status"

# Server -> client
NEW_EMERGENCY_REQUEST = "new-emergency-request"
REQUEST_ACCEPTED = "request-accepted"
REQUEST_STATUS_UPDATE = "request-status-update"
DRIVER_LOCATION_UPDATE = "driver-location-update"
DRIVER_STATUS_UPDATE = "driver-status-update"
ERROR = "error"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class GeoPoint(WireModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class AddressedPoint(GeoPoint):
    address: str


# --- Inbound ---

class JoinEvent(WireModel):
    """Sent by a client after connecting. userType is advisory only."""
    user_id: Optional[int] = None
    user_type: Optional[str] = None


class LocationUpdateEvent(WireModel):
    driver_id: Optional[int] = None
    location: GeoPoint


class StatusUpdateEvent(WireModel):
    driver_id: Optional[int] = None
    status: str


# --- Outbound ---

class NewRequestEvent(WireModel):
    """Broadcast to available drivers when a patient submits a request."""
    request_id: int
    pickup_location: AddressedPoint
    destination: AddressedPoint
    vehicle_type: str
    emergency_type: str
    notes: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class VehicleDetails(WireModel):
    type: str
    name: str
    plate_number: str


class AcceptedDriver(WireModel):
    name: str
    phone: str
    vehicle_details: VehicleDetails


class RequestAcceptedEvent(WireModel):
    """Sent to the patient when a driver claims their request."""
    request_id: int
    driver: AcceptedDriver
    timestamp: datetime = Field(default_factory=_now)


class RequestStatusEvent(WireModel):
    """Sent to the other party when a request changes status."""
    request_id: int
    status: str
    timestamp: datetime = Field(default_factory=_now)


class DriverLocationEvent(WireModel):
    request_id: int
    location: GeoPoint
    timestamp: datetime = Field(default_factory=_now)


class ErrorEvent(WireModel):
    message: str
