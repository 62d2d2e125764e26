"""
services/auth/router.py
Session endpoints on top of the identity provider's tokens.
Implements: post-sign-in routing → identity → logout → failed sign-in reporting
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import TokenDenyList, get_redis
from shared import audit
from shared.middleware.auth import TokenData, get_optional_profile, get_token_data
from shared.models.models import AuditEventType, ModerationState, Profile, UserRole
from shared.schemas.schemas import FailedSignInRequest, MessageResponse, SessionResponse
from shared.utils.security import get_client_ip, hash_email
from services.ratelimit.dependencies import enforce_limit
from services.ratelimit.limiter import RateLimiter, get_rate_limiter

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ── Helper ────────────────────────────────────────────────────

def _next_step(profile: Optional[Profile]) -> str:
    """Where the client should go after sign-in."""
    if profile is None:
        return "profile-setup"
    if profile.role == UserRole.ADMIN:
        return "admin"
    if profile.terms_accepted_at is None:
        return "terms"
    if profile.state == ModerationState.APPROVED:
        return "home"
    return profile.status


def _session_state(token_data: TokenData, profile: Optional[Profile]) -> SessionResponse:
    return SessionResponse(
        user_id=token_data.user_id,
        profile_exists=profile is not None,
        role=profile.role if profile else None,
        status=profile.status if profile else None,
        terms_accepted=bool(profile and profile.terms_accepted_at),
        next=_next_step(profile),
    )


# ── Routes ────────────────────────────────────────────────────

@router.post("/session", response_model=SessionResponse)
async def start_session(
    request: Request,
    token_data: TokenData = Depends(get_token_data),
    profile: Optional[Profile] = Depends(get_optional_profile),
):
    """
    Called right after the provider signs the user in.
    Banned accounts are refused (and signed out) by get_optional_profile.
    """
    if profile and profile.role == UserRole.ADMIN:
        await audit.record(AuditEventType.ADMIN_LOGIN, actor_id=profile.id, request=request)
    return _session_state(token_data, profile)


@router.get("/me", response_model=SessionResponse)
async def get_me(
    token_data: TokenData = Depends(get_token_data),
    profile: Optional[Profile] = Depends(get_optional_profile),
):
    return _session_state(token_data, profile)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    token_data: TokenData = Depends(get_token_data),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Revoke the current session. The provider-side sign-out is the client's job."""
    if token_data.jti:
        await TokenDenyList(redis).revoke(token_data.jti, token_data.ttl)

    profile = await db.get(Profile, token_data.user_id)
    if profile and profile.role == UserRole.ADMIN:
        await audit.record(AuditEventType.ADMIN_LOGOUT, actor_id=profile.id, request=request)

    return MessageResponse(message="Logged out successfully")


@router.post("/failed-attempts", response_model=MessageResponse)
async def report_failed_sign_in(
    data: FailedSignInRequest,
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Clients report a failed sign-in here. Too many from one address
    within the auth window gets a 429 with retryAfter.
    """
    client_ip = get_client_ip(request)
    await enforce_limit(limiter, "auth", client_ip, request=request)
    await audit.record(
        AuditEventType.AUTH_FAILED,
        details={"email_hash": hash_email(data.email)},
        request=request,
    )
    return MessageResponse(message="Failed attempt recorded")
