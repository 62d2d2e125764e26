"""
services/profile/router.py
Profile setup and edits, terms acceptance, public views, and account deletion.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import TokenDenyList, get_redis
from shared import audit
from shared.events import bus
from shared.middleware.auth import (
    TokenData,
    get_current_profile,
    get_optional_profile,
    get_token_data,
)
from shared.models.models import AuditEventType, Profile, utcnow
from shared.schemas.schemas import (
    MessageResponse,
    ProfileResponse,
    ProfileSubmitRequest,
    PublicProfileResponse,
)
from services.profile import service as profile_service
from services.ratelimit.dependencies import enforce_limit
from services.ratelimit.limiter import RateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles", tags=["Profiles"])

PROFILE_EVENT_COLUMNS = ("id", "state", "updated_at")


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(current_profile: Profile = Depends(get_current_profile)):
    return current_profile


@router.put("/me", response_model=ProfileResponse)
async def submit_my_profile(
    data: ProfileSubmitRequest,
    request: Request,
    token_data: TokenData = Depends(get_token_data),
    existing: Optional[Profile] = Depends(get_optional_profile),
    limiter: RateLimiter = Depends(get_rate_limiter),
    db: AsyncSession = Depends(get_db),
):
    """
    Create the profile on first call, edit it afterwards. Either way it
    goes (back) to pending review. An approved profile is snapshotted first.
    """
    await enforce_limit(
        limiter, "profile", str(token_data.user_id), request=request, actor_id=token_data.user_id
    )

    profile, created = await profile_service.submit_profile(db, token_data, existing, data)
    await db.commit()
    await db.refresh(profile)

    await audit.record(
        AuditEventType.PROFILE_CREATED if created else AuditEventType.PROFILE_UPDATED,
        actor_id=profile.id,
        target_id=profile.id,
        request=request,
    )
    await bus.publish(
        bus.ChangeEvent(
            "profiles",
            bus.INSERT if created else bus.UPDATE,
            bus.serialize_row(profile, PROFILE_EVENT_COLUMNS),
        )
    )
    logger.info(f"Profile {profile.id} {'created' if created else 'updated'}, awaiting review")
    return profile


@router.post("/me/terms", response_model=ProfileResponse)
async def accept_terms(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    if current_profile.terms_accepted_at is None:
        current_profile.terms_accepted_at = utcnow()
        await db.commit()
        await db.refresh(current_profile)
    return current_profile


@router.get("/{profile_id}", response_model=PublicProfileResponse)
async def get_profile(
    profile_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """
    Approved profiles are public. A match partner whose edit is waiting
    for review is shown as last approved. Anything else does not exist.
    """
    view = await profile_service.public_view(db, current_profile.id, profile_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return view


@router.delete("/me", response_model=MessageResponse)
async def delete_my_account(
    token_data: TokenData = Depends(get_token_data),
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    user_id = current_profile.id
    await profile_service.delete_account(db, current_profile)
    await db.commit()

    if token_data.jti:
        await TokenDenyList(redis).revoke(token_data.jti, token_data.ttl)
    await bus.publish(bus.ChangeEvent("profiles", bus.DELETE, {"id": str(user_id)}))
    logger.info(f"Account {user_id} deleted")
    return MessageResponse(message="Your account has been deleted")
