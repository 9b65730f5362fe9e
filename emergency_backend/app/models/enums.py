"""
User roles enumeration.

Defines the role types for the emergency dispatch system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: System-level access (seeded, never self-registered)
        PATIENT: Requests ambulances (default role)
        DRIVER: Operates one ambulance and accepts requests
    """
    ADMIN = "ADMIN"
    PATIENT = "PATIENT"
    DRIVER = "DRIVER"
