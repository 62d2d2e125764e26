"""
services/match/service.py
Match lookups and cooperative mission progression.
"""

import uuid
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Match, utcnow

LAST_MISSION = 3


def involving(user_id: uuid.UUID):
    return or_(Match.user1_id == user_id, Match.user2_id == user_id)


async def find_match(db: AsyncSession, a: uuid.UUID, b: uuid.UUID) -> Optional[Match]:
    user1, user2 = Match.ordered_pair(a, b)
    result = await db.execute(
        select(Match).where(and_(Match.user1_id == user1, Match.user2_id == user2))
    )
    return result.scalar_one_or_none()


async def get_participant_match(
    db: AsyncSession, match_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[Match]:
    """The match, or None if it does not exist or the user is not in it."""
    result = await db.execute(
        select(Match).where(Match.id == match_id, involving(user_id))
    )
    return result.scalar_one_or_none()


async def list_matches(db: AsyncSession, user_id: uuid.UUID) -> list[Match]:
    result = await db.execute(
        select(Match).where(involving(user_id)).order_by(Match.created_at.desc(), Match.id)
    )
    return list(result.scalars())


async def advance_mission(db: AsyncSession, match: Match) -> Match:
    """
    Move the shared checklist one step forward. A completed match is left alone.
    The UPDATE is conditional on the step we read, so two simultaneous
    advances from both partners move it by exactly one.
    """
    if match.mission_completed:
        return match

    seen = match.mission_number
    if seen < LAST_MISSION:
        values = {"mission_number": seen + 1}
    else:
        values = {"mission_completed": True, "mission_completed_at": utcnow()}

    await db.execute(
        update(Match)
        .where(
            Match.id == match.id,
            Match.mission_completed == False,  # noqa: E712
            Match.mission_number == seen,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(match)
    return match
