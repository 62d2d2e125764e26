"""
shared/middleware/auth.py
FastAPI dependency functions for authentication and authorization.

Session tokens come from the identity provider and are validated here.
A banned profile is refused on every request and its session revoked,
which forces the client to sign out.
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import TokenDenyList, get_redis
from shared import audit
from shared.models.models import AuditEventType, Profile, UserRole
from shared.utils.security import get_token_remaining_ttl, verify_access_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

FORCE_SIGN_OUT_HEADER = "X-Force-Sign-Out"


class TokenData:
    def __init__(self, payload: dict):
        self.user_id: uuid.UUID = uuid.UUID(str(payload["sub"]))
        self.email: str = payload.get("email") or ""
        self.email_verified: bool = bool(payload.get("email_verified", False))
        self.jti: Optional[str] = payload.get("jti") or payload.get("session_id")
        self.ttl: int = get_token_remaining_ttl(payload)


async def decode_token(token: str, redis) -> TokenData:
    """Shared by the bearer dependency and the websocket feed."""
    try:
        payload = verify_access_token(token)
        token_data = TokenData(payload)
    except (JWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Check if the session has been revoked (sign-out or ban)
    if token_data.jti and await TokenDenyList(redis).is_revoked(token_data.jti):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has been revoked",
            headers={FORCE_SIGN_OUT_HEADER: "true"},
        )

    if not token_data.email_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email address has not been verified",
        )
    return token_data


async def get_token_data(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    redis=Depends(get_redis),
) -> TokenData:
    """Extract and validate the session token from the Authorization header."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await decode_token(credentials.credentials, redis)


async def enforce_not_banned(profile: Profile, token_data: TokenData, redis) -> None:
    if not profile.is_banned:
        return
    if token_data.jti:
        await TokenDenyList(redis).revoke(token_data.jti, token_data.ttl)
    logger.warning(f"Forced sign-out for banned user {profile.id}")
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="This account has been banned",
        headers={FORCE_SIGN_OUT_HEADER: "true"},
    )


async def get_optional_profile(
    token_data: TokenData = Depends(get_token_data),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
) -> Optional[Profile]:
    """Profile for the session, or None before profile setup. Banned users never get through."""
    result = await db.execute(select(Profile).where(Profile.id == token_data.user_id))
    profile = result.scalar_one_or_none()
    if profile:
        await enforce_not_banned(profile, token_data, redis)
    return profile


async def get_current_profile(
    profile: Optional[Profile] = Depends(get_optional_profile),
) -> Profile:
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found. Complete profile setup first.",
        )
    return profile


class RoleRequired:
    """Dependency factory for role-based access control."""

    def __init__(self, *roles: UserRole):
        self.roles = roles

    async def __call__(
        self,
        request: Request,
        current_profile: Profile = Depends(get_current_profile),
    ) -> Profile:
        if current_profile.role not in self.roles:
            await audit.record(
                AuditEventType.UNAUTHORIZED_ACCESS,
                actor_id=current_profile.id,
                details={"path": request.url.path, "method": request.method},
                request=request,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Required role: {[r.value for r in self.roles]}",
            )
        return current_profile


require_admin = RoleRequired(UserRole.ADMIN)
