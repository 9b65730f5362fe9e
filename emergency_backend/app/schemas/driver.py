"""
Driver profile schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from emergency_backend.app.models.dispatch_enums import VehicleType
from emergency_backend.app.services.driver_registry import DriverDetails


class AmbulanceProfile(BaseModel):
    id: int
    vehicle_type: VehicleType
    vehicle_name: str
    plate_number: str
    is_available: bool
    current_latitude: Optional[float] = None
    current_longitude: Optional[float] = None
    location_updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DriverProfile(BaseModel):
    id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    is_active: bool
    license_number: str
    is_available: bool
    current_request_id: Optional[int] = None
    connected: bool
    ambulance: Optional[AmbulanceProfile] = None

    @classmethod
    def from_details(cls, details: DriverDetails) -> "DriverProfile":
        return cls(
            id=details.driver.id,
            email=details.user.email,
            full_name=details.user.full_name,
            phone=details.user.phone,
            is_active=details.user.is_active,
            license_number=details.driver.license_number,
            is_available=details.driver.is_available,
            current_request_id=details.driver.current_request_id,
            connected=details.driver.socket_id is not None,
            ambulance=AmbulanceProfile.model_validate(details.ambulance) if details.ambulance else None,
        )


class DriverProfileUpdate(BaseModel):
    """Body of PUT /driver/profile. Omitted fields are left unchanged."""
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    phone: Optional[str] = Field(default=None, min_length=5, max_length=30)
    license_number: Optional[str] = Field(default=None, min_length=1, max_length=100)
    vehicle_name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    plate_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
