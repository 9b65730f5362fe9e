"""
Emergency Request database model.

A patient's ambulance request and its lifecycle state. Rows are never
deleted; completed and cancelled requests are kept as history.
"""

from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, Enum, Index
from sqlalchemy.sql import func
from emergency_backend.app.db.session import Base
from emergency_backend.app.models.dispatch_enums import VehicleType, RequestStatus, PaymentStatus


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class EmergencyRequest(Base):
    """
    Emergency Request model.

    driver_id/ambulance_id are set only while status is accepted..completed.
    amount is derived from vehicle_type once, at creation.
    """
    __tablename__ = "emergency_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parties
    patient_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=True, index=True)
    ambulance_id = Column(Integer, ForeignKey('ambulances.id'), nullable=True, index=True)

    # Pickup point
    pickup_latitude = Column(Float, nullable=False)
    pickup_longitude = Column(Float, nullable=False)
    pickup_address = Column(String(500), nullable=False)

    # Destination point
    destination_latitude = Column(Float, nullable=False)
    destination_longitude = Column(Float, nullable=False)
    destination_address = Column(String(500), nullable=False)

    vehicle_type = Column(
        Enum(VehicleType, name="vehicle_type", values_callable=_enum_values),
        nullable=False
    )
    amount = Column(Integer, nullable=False)

    status = Column(
        Enum(RequestStatus, name="request_status", values_callable=_enum_values),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_status = Column(
        Enum(PaymentStatus, name="payment_status", values_callable=_enum_values),
        default=PaymentStatus.PENDING,
        nullable=False
    )

    emergency_type = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_emergency_requests_pickup', 'pickup_latitude', 'pickup_longitude'),
        Index('ix_emergency_requests_destination', 'destination_latitude', 'destination_longitude'),
    )

    def __repr__(self):
        return f"<EmergencyRequest(id={self.id}, patient_id={self.patient_id}, status='{self.status.value}')>"
