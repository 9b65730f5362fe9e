"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
`authenticate_token` is shared with the Socket.IO connect handler so both
channels resolve identity and role the same way, server-side.
"""

from typing import Any, Dict
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from emergency_backend.app.core.jwt import decode_access_token
from emergency_backend.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from emergency_backend.app.db.session import get_db
from emergency_backend.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()


async def authenticate_token(token: str, db: AsyncSession) -> Dict[str, Any]:
    """
    Validate a bearer token and return the caller's identity.

    Security checks:
    1. Validates JWT token signature and expiry
    2. Checks if token has been explicitly revoked
    3. Checks if all user tokens have been revoked (user blocked)
    4. Verifies user is still active in database (real-time check)

    The returned role is read from the users table, never from the token
    or from anything the client sends alongside it.

    Raises:
        HTTPException: 401 if authentication fails, 403 if the account is inactive
    """
    # 1. Decode and validate JWT
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 2. Check if this specific token has been revoked
    if await is_token_revoked(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 3. Check if all user tokens have been revoked (user was blocked)
    if await are_user_tokens_revoked(user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User access has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 4. Real-time database check: Verify user is still active
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return {
        **payload,
        "user_id": user.id,
        "sub": user.email,
        "role": user.role.value,
        "token": token,
    }


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Token payload enriched with the stored role and the raw token
    """
    return await authenticate_token(credentials.credentials, db)
