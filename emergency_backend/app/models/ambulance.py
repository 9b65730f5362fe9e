"""
Ambulance database model.

One ambulance per driver. Availability mirrors the owning driver.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Enum, Index
from sqlalchemy.sql import func
from emergency_backend.app.db.session import Base
from emergency_backend.app.models.dispatch_enums import VehicleType


class Ambulance(Base):
    """
    Ambulance model.

    Only the last reported location is kept; there is no track history.
    """
    __tablename__ = "ambulances"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - one ambulance per driver
    driver_id = Column(Integer, ForeignKey('drivers.id'), unique=True, nullable=False, index=True)

    # Vehicle identification
    vehicle_type = Column(
        Enum(VehicleType, name="vehicle_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True
    )
    vehicle_name = Column(String(150), nullable=False)
    plate_number = Column(String(50), unique=True, nullable=False, index=True)

    is_available = Column(Boolean, default=True, nullable=False, index=True)

    # Last known position
    current_latitude = Column(Float, nullable=True)
    current_longitude = Column(Float, nullable=True)
    location_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_ambulances_current_location', 'current_latitude', 'current_longitude'),
    )

    def __repr__(self):
        return f"<Ambulance(id={self.id}, plate='{self.plate_number}', type='{self.vehicle_type.value}')>"
