"""
Driver database model.

A driver is a User with role DRIVER plus dispatch state: availability,
the request currently assigned, and the live Socket.IO connection id.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from emergency_backend.app.db.session import Base


class Driver(Base):
    """
    Driver model.

    Shares its primary key with users.id, so a driver's id is the
    authenticated user id carried in the JWT.
    """
    __tablename__ = "drivers"

    id = Column(Integer, ForeignKey('users.id'), primary_key=True)

    license_number = Column(String(100), unique=True, nullable=False, index=True)

    # Dispatch state, mutated only by accept/complete/cancel
    is_available = Column(Boolean, default=True, nullable=False, index=True)
    current_request_id = Column(Integer, nullable=True, index=True)

    # Ephemeral: set on join, cleared on disconnect
    socket_id = Column(String(100), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Driver(id={self.id}, available={self.is_available}, request={self.current_request_id})>"
