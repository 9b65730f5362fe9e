"""
Admin API Endpoints.

Provides admin-only driver oversight, user blocking and audit trails.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from emergency_backend.app.db.session import get_db
from emergency_backend.app.models.user import User
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.schemas.admin import (
    DriverListResponse, BlockUserRequest, UnblockUserRequest,
    AdminActionResponse, AuditTrailResponse, AuditLogResponse
)
from emergency_backend.app.schemas.driver import DriverProfile
from emergency_backend.app.core.exceptions import ConflictError
from emergency_backend.app.core.guards import require_admin
from emergency_backend.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from emergency_backend.app.services.audit import (
    log_event, AuditAction, get_audit_trail, get_request_audit_trail
)
from emergency_backend.app.services.driver_registry import DriverRegistry
from emergency_backend.app.services.request_store import RequestStore

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/drivers", response_model=DriverListResponse)
async def list_drivers(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List all drivers with their ambulance and availability (admin-only).
    """
    details = await DriverRegistry(db).list_details(offset=(page - 1) * page_size, limit=page_size)

    return DriverListResponse(
        drivers=[DriverProfile.from_details(d) for d in details],
        page=page,
        page_size=page_size
    )


async def _get_target_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    target_user = result.scalar_one_or_none()

    if not target_user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return target_user


@router.post("/users/{user_id}/block", response_model=AdminActionResponse)
async def block_user(
    user_id: int,
    request: BlockUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Block a user and revoke all their active tokens (admin-only).

    This immediately terminates all user sessions. A blocked driver drops
    out of the available pool; a driver holding a request is refused (409).
    """
    target_user = await _get_target_user(db, user_id)

    # Prevent blocking another admin
    if target_user.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot block another admin user"
        )

    if not target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already blocked"
        )

    # Drivers holding a request cannot be blocked until it ends
    if target_user.role == UserRole.DRIVER:
        driver = await DriverRegistry(db).get_driver(user_id)
        if driver.current_request_id is not None:
            raise ConflictError(
                "Driver is on an active request",
                details={"driver_id": user_id, "request_id": driver.current_request_id}
            )

    target_user.is_active = False
    await db.commit()

    # Revoke all active tokens
    await revoke_all_user_tokens(user_id)

    audit_log = await log_event(
        db=db,
        action=AuditAction.USER_BLOCKED,
        actor_id=admin["user_id"],
        actor_email=admin["sub"],
        target_user_id=target_user.id,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.email}' has been blocked",
        user_id=user_id,
        action=AuditAction.USER_BLOCKED,
        audit_log_id=audit_log.id
    )


@router.post("/users/{user_id}/unblock", response_model=AdminActionResponse)
async def unblock_user(
    user_id: int,
    request: UnblockUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Unblock a user and clear token revocations (admin-only).

    User will be able to login again and generate new tokens.
    """
    target_user = await _get_target_user(db, user_id)

    if target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already active"
        )

    target_user.is_active = True
    await db.commit()

    # Clear token revocations (user can now login and get new tokens)
    await clear_user_token_revocation(user_id)

    audit_log = await log_event(
        db=db,
        action=AuditAction.USER_UNBLOCKED,
        actor_id=admin["user_id"],
        actor_email=admin["sub"],
        target_user_id=target_user.id,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.email}' has been unblocked",
        user_id=user_id,
        action=AuditAction.USER_UNBLOCKED,
        audit_log_id=audit_log.id
    )


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    user_id: int = Query(None, description="Filter by target user ID"),
    action: str = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (admin-only).
    """
    logs = await get_audit_trail(
        db=db,
        target_user_id=user_id,
        action=action,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )


@router.get("/requests/{request_id}/audit-trail", response_model=AuditTrailResponse)
async def get_request_trail(
    request_id: int,
    limit: int = Query(100, ge=1, le=500),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Lifecycle of one emergency request, oldest event first (admin-only).
    """
    # 404 for unknown requests rather than an empty trail
    await RequestStore(db).get(request_id)

    logs = await get_request_audit_trail(db=db, request_id=request_id, limit=limit)

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
