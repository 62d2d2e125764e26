"""
services/discovery/service.py
Swipe queue: approved profiles the requester has not swiped on yet and
whose gender preferences are compatible in both directions.
"""

from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from shared.errors import ModerationStateConflict
from shared.models.models import Gender, ModerationState, PreferredGender, Profile, Swipe


def gender_filters(requester: Profile) -> list:
    """
    R sees C iff R's preference admits C's gender AND C's preference admits
    R's gender. Everyone (or no preference on the candidate side) admits all.
    A requester missing either value gets no gender filtering.
    """
    if requester.gender is None or requester.preferred_gender is None:
        return []

    clauses = []
    if requester.preferred_gender != PreferredGender.EVERYONE:
        clauses.append(Profile.gender == Gender(requester.preferred_gender.value))
    clauses.append(
        or_(
            Profile.preferred_gender.is_(None),
            Profile.preferred_gender == PreferredGender.EVERYONE,
            Profile.preferred_gender == PreferredGender(requester.gender.value),
        )
    )
    return clauses


async def get_candidates(
    db: AsyncSession,
    requester: Profile,
    limit: Optional[int] = None,
) -> list[Profile]:
    """Server-side exclusion set; an empty list is a valid answer."""
    if requester.state != ModerationState.APPROVED:
        raise ModerationStateConflict("Your profile must be approved before you can browse.")

    already_swiped = select(Swipe.swiped_id).where(Swipe.swiper_id == requester.id)
    stmt = (
        select(Profile)
        .where(
            Profile.state == ModerationState.APPROVED,
            Profile.id != requester.id,
            Profile.id.not_in(already_swiped),
            *gender_filters(requester),
        )
        .order_by(Profile.created_at.asc(), Profile.id.asc())
        .limit(limit or settings.CANDIDATE_LIMIT)
    )
    result = await db.execute(stmt)
    return list(result.scalars())
