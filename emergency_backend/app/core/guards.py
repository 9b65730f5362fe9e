"""
Security guards for role-based and party-based access control.

Provides dependencies for protecting endpoints and helpers for checking
whether the caller is a party to an emergency request.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.core.dependencies import get_current_user
from emergency_backend.app.core.exceptions import InsufficientPermissionsError


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/emergency/request")
        async def create(current_user: dict = Depends(require_role([UserRole.PATIENT]))):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing"
            )

        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """Dependency for admin-only endpoints."""
    if current_user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user


class RequestPartyGuard:
    """
    Party checks for emergency requests.

    A request has two parties: the patient who created it and the driver
    who holds it. Admins may read any request but never act on one.
    """

    def can_view(self, request, current_user: dict) -> bool:
        user_id = current_user.get("user_id")
        if current_user.get("role") == UserRole.ADMIN.value:
            return True
        return user_id == request.patient_id or (
            request.driver_id is not None and user_id == request.driver_id
        )

    def enforce_view(self, request, current_user: dict):
        if not self.can_view(request, current_user):
            raise InsufficientPermissionsError("Not authorized to view this request")

    def enforce_patient(self, request, current_user: dict, action: str = "update this request"):
        if current_user.get("user_id") != request.patient_id:
            raise InsufficientPermissionsError(f"Not authorized to {action}")

    def enforce_assigned_driver(self, request, driver_id: int):
        if request.driver_id is None or request.driver_id != driver_id:
            raise InsufficientPermissionsError("Not authorized to update this request")
