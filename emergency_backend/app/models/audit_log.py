"""
Audit Log Database Model.

Tracks authentication events, admin actions, and emergency request
lifecycle transitions.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from emergency_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - LOGIN_SUCCESS / LOGIN_FAILED / USER_CREATED / TOKEN_REVOKED
    - USER_BLOCKED / USER_UNBLOCKED
    - REQUEST_CREATED / REQUEST_ACCEPTED / REQUEST_STATUS_CHANGED
    - REQUEST_CANCELLED / PAYMENT_COMPLETED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Who or what was acted upon
    target_user_id = Column(Integer, index=True, nullable=True)
    request_id = Column(Integer, index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # IP address for login tracking
    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email}, request={self.request_id})>"
