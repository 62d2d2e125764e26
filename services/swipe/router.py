"""
services/swipe/router.py
Swipe endpoint. Match detection and notifications live in the service.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.events import bus
from shared.middleware.auth import get_current_profile
from shared.models.models import Profile, SwipeDirection
from shared.schemas.schemas import SwipeRequest, SwipeResponse
from services.swipe.service import record_swipe

router = APIRouter(prefix="/swipes", tags=["Swipes"])


@router.post("", response_model=SwipeResponse)
async def swipe(
    data: SwipeRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    outcome = await record_swipe(db, current_profile, data.swiped_id, SwipeDirection(data.direction))
    for event in outcome.events:
        await bus.publish(event)
    return SwipeResponse(
        matched=outcome.matched,
        was_secret_admirer=outcome.was_secret_admirer,
        lost_match=outcome.lost_match,
        match_id=outcome.match_id,
    )
