"""
services/discovery/router.py
Swipe queue for the signed-in user.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from shared.middleware.auth import get_current_profile
from shared.models.models import Profile
from shared.schemas.schemas import PublicProfileResponse
from services.discovery.service import get_candidates

router = APIRouter(tags=["Discovery"])


@router.get("/candidates", response_model=List[PublicProfileResponse])
async def list_candidates(
    limit: Optional[int] = Query(None, ge=1, le=settings.CANDIDATE_LIMIT),
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """
    Approved profiles the caller has not swiped on yet and whose
    preferences line up both ways. An empty list means nobody new.
    """
    candidates = await get_candidates(db, current_profile, limit=limit)
    return [c.public_fields() for c in candidates]
