"""
Authentication API endpoints.

Provides register, login, logout and user info endpoints for the patient
and driver apps.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from emergency_backend.app.db.session import get_db
from emergency_backend.app.models.user import User
from emergency_backend.app.models.driver import Driver
from emergency_backend.app.models.ambulance import Ambulance
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.schemas.auth import UserRegister, UserLogin, TokenResponse, UserResponse
from emergency_backend.app.core.security import get_password_hash, verify_password
from emergency_backend.app.core.jwt import create_access_token
from emergency_backend.app.core.dependencies import get_current_user
from emergency_backend.app.core.token_revocation import revoke_token
from emergency_backend.app.services.audit import log_auth_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _issue_token(user: User) -> TokenResponse:
    jwt_payload = {
        "sub": user.email,
        "user_id": user.id,
        "role": user.role.value,
    }

    return TokenResponse(
        access_token=create_access_token(data=jwt_payload),
        token_type="bearer",
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new patient or driver.

    Rules:
    - ADMIN role cannot be created via API.
    - DRIVER registration also creates the driver record and their ambulance.
    - Email, license number and plate number are unique.
    """
    # 1. Block ADMIN registration
    if user_data.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin users cannot be registered via API"
        )

    # 2. Check if email already exists
    result = await db.execute(select(User.id).where(User.email == user_data.email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    # 3. Driver credentials and vehicle must be unique too
    if user_data.role == UserRole.DRIVER:
        result = await db.execute(
            select(Driver.id).where(Driver.license_number == user_data.license_number)
        )
        if result.scalar_one_or_none() is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="License number already registered"
            )

        result = await db.execute(
            select(Ambulance.id).where(Ambulance.plate_number == user_data.ambulance.plate_number)
        )
        if result.scalar_one_or_none() is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Plate number already registered"
            )

    # Create new user
    new_user = User(
        email=user_data.email,
        full_name=user_data.full_name,
        phone=user_data.phone,
        hashed_password=get_password_hash(user_data.password),
        role=user_data.role,
        is_active=True,
    )
    db.add(new_user)
    await db.flush()

    if user_data.role == UserRole.DRIVER:
        db.add(Driver(id=new_user.id, license_number=user_data.license_number))
        # ambulances.driver_id references drivers.id; no relationship orders the inserts
        await db.flush()
        db.add(Ambulance(
            driver_id=new_user.id,
            vehicle_type=user_data.ambulance.vehicle_type,
            vehicle_name=user_data.ambulance.vehicle_name,
            plate_number=user_data.ambulance.plate_number,
        ))

    await db.commit()
    await db.refresh(new_user)

    await log_auth_event(
        db=db,
        action=AuditAction.USER_CREATED,
        user_id=new_user.id,
        email=new_user.email,
        metadata={"role": new_user.role.value}
    )

    return _issue_token(new_user)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """
    Login user and return JWT token.

    Logs successful and failed login attempts for security monitoring.
    """
    result = await db.execute(select(User).where(User.email == credentials.email))
    user = result.scalar_one_or_none()

    if not user:
        # Log failed login attempt
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=None,
            email=credentials.email,
            metadata={"reason": "User not found"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Verify password
    if not verify_password(credentials.password, user.hashed_password):
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=user.id,
            email=user.email,
            metadata={"reason": "Invalid password"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Check if user is active
    if not user.is_active:
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=user.id,
            email=user.email,
            metadata={"reason": "Account is inactive/blocked"}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account"
        )

    token = _issue_token(user)

    # Log successful login
    await log_auth_event(
        db=db,
        action=AuditAction.LOGIN_SUCCESS,
        user_id=user.id,
        email=user.email
    )

    return token


@router.post("/logout")
async def logout(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Revoke the token used for this call.

    Other tokens of the same user stay valid until they expire.
    """
    revoked = await revoke_token(current_user["token"], current_user["user_id"])

    await log_auth_event(
        db=db,
        action=AuditAction.TOKEN_REVOKED,
        user_id=current_user["user_id"],
        email=current_user["sub"],
        metadata={"revoked": revoked}
    )

    return {"success": revoked, "message": "Logged out" if revoked else "Logout could not be recorded"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information.

    Requires valid JWT token in Authorization header.

    Raises:
        404: If user not found in database
    """
    user_id = current_user.get("user_id")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return UserResponse.model_validate(user)
