"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, EmailStr, Field, model_validator
from datetime import datetime
from typing import Optional
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.models.dispatch_enums import VehicleType


class AmbulanceRegister(BaseModel):
    """The ambulance a driver operates, supplied at registration."""
    vehicle_type: VehicleType = Field(..., description="AC, ICU or VIP")
    vehicle_name: str = Field(..., min_length=1, max_length=100)
    plate_number: str = Field(..., min_length=1, max_length=30)


class UserRegister(BaseModel):
    """
    Schema for user registration.

    Used by POST /auth/register endpoint.
    Default role is PATIENT. Drivers must also send a license number and
    their ambulance.
    """
    email: EmailStr = Field(..., description="User email address")
    full_name: str = Field(..., min_length=1, max_length=100, description="Display name")
    phone: str = Field(..., min_length=5, max_length=20, description="Contact number")
    password: str = Field(..., min_length=6, description="Password (min 6 characters)")
    role: Optional[UserRole] = Field(default=UserRole.PATIENT, description="User role (defaults to PATIENT)")
    license_number: Optional[str] = Field(default=None, max_length=50, description="Required for DRIVER")
    ambulance: Optional[AmbulanceRegister] = Field(default=None, description="Required for DRIVER")

    @model_validator(mode="after")
    def check_driver_fields(self):
        if self.role == UserRole.DRIVER and (not self.license_number or self.ambulance is None):
            raise ValueError("Drivers must provide license_number and ambulance")
        return self


class UserLogin(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login endpoint.
    """
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., description="Password")


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by successful login/register operations.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: int = Field(..., description="User ID")
    email: str = Field(..., description="Email address")
    full_name: str = Field(..., description="Display name")
    role: UserRole = Field(..., description="User role")


class UserResponse(BaseModel):
    """
    Schema for user information response.

    Used by GET /auth/me endpoint.
    """
    id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
