"""
Authentication middleware for JWT verification.

This module provides authentication by:
1. Extracting and verifying the JWT from the Authorization header
2. Looking up the user in our database to get their role and flags
3. Returning a verified Principal that routes and services can trust

SECURITY: Never trust user ids or roles from client query parameters.
Always use the Principal returned by these dependencies.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt

from access_control.roles import Principal, Role, parse_role
from config import settings
from models.database import get_session
from models.user import User

logger = logging.getLogger(__name__)


def _extract_token(authorization: Optional[str]) -> str:
    """
    Extract the JWT token from the Authorization header.

    Raises:
        HTTPException: If header is missing or malformed
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return parts[1]


def _verify_jwt(token: str) -> dict:
    """Verify the token signature/expiry and return its claims."""
    if not settings.JWT_SECRET:
        logger.error("JWT_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication not configured",
        )

    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def _get_user_from_token(payload: dict) -> User:
    """
    Look up the user named by the token's subject claim.

    Raises:
        HTTPException: If the subject is missing/unknown or the user is inactive
    """
    sub = payload.get("sub") or payload.get("id")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing subject",
        )

    try:
        user_uuid = UUID(str(sub))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: malformed subject",
        )

    async with get_session() as session:
        user = await session.get(User, user_uuid)

    if not user:
        logger.warning(f"User not found for JWT subject: {sub}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    return user


def principal_from_user(user: User) -> Principal:
    """
    Build the request principal for a user row.

    A role string we do not recognise is refused outright rather than
    falling back to the most restrictive visibility.
    """
    role = parse_role(user.role)
    if role is None:
        logger.warning(
            "Rejected user with unrecognised role",
            extra={"user_id": str(user.id), "role": user.role},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unrecognised user role",
        )
    return Principal(id=user.id, role=role, is_master_sales=bool(user.is_master_sales))


async def get_current_principal(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Principal:
    """
    FastAPI dependency that verifies the JWT and returns the Principal.

    Usage:
        @router.get("/protected")
        async def protected_route(principal: Principal = Depends(get_current_principal)):
            ...
    """
    token = _extract_token(authorization)
    payload = _verify_jwt(token)
    user = await _get_user_from_token(payload)
    return principal_from_user(user)


def require_roles(*roles: Role) -> Callable[..., Awaitable[Principal]]:
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        @router.get("/admin", dependencies=[Depends(require_roles(Role.ADMIN))])
    """
    allowed = frozenset(roles)

    async def _require(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _require
