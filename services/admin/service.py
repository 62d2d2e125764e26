"""
services/admin/service.py
Moderation decisions: profile review and ban enforcement.

A ban runs as one database transaction in this order: matches (with their
messages) are deleted, the profile goes to banned, the originating report
is deleted. If anything fails the whole unit rolls back, and the caller
re-reads true state rather than trusting what it asked for.
"""

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import ModerationStateConflict
from shared.models.models import Match, Message, ModerationState, Profile, Report, utcnow
from services.match.service import involving

logger = logging.getLogger(__name__)

_BULK = {"synchronize_session": False}


@dataclass
class BanResult:
    user_id: uuid.UUID
    report_id: uuid.UUID
    deleted_matches: list[dict] = field(default_factory=list)

    @property
    def matches_deleted(self) -> int:
        return len(self.deleted_matches)


def review_profile(profile: Profile, approve: bool) -> None:
    """pending → approved | rejected. The caller commits."""
    if profile.state != ModerationState.PENDING:
        raise ModerationStateConflict(
            f"Only pending profiles can be reviewed (this one is {profile.status})."
        )
    profile.state = ModerationState.APPROVED if approve else ModerationState.REJECTED
    profile.reviewed_at = utcnow()


async def ban_user(db: AsyncSession, report: Report) -> BanResult:
    user_id = report.reported_id
    result = BanResult(user_id=user_id, report_id=report.id)

    profile = await db.get(Profile, user_id)
    if profile is None:
        raise ModerationStateConflict("The reported user no longer exists.")

    try:
        rows = (
            await db.execute(select(Match.id, Match.user1_id, Match.user2_id).where(involving(user_id)))
        ).all()
        match_ids = [row.id for row in rows]
        if match_ids:
            await db.execute(
                delete(Message).where(Message.match_id.in_(match_ids)), execution_options=_BULK
            )
            await db.execute(delete(Match).where(Match.id.in_(match_ids)), execution_options=_BULK)

        profile.state = ModerationState.BANNED
        profile.banned_at = utcnow()
        profile.reviewed_at = profile.banned_at

        await db.delete(report)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.error(f"Ban of {user_id} failed, nothing was applied")
        raise

    result.deleted_matches = [
        {"id": str(row.id), "user1_id": str(row.user1_id), "user2_id": str(row.user2_id)}
        for row in rows
    ]
    logger.warning(f"User {user_id} banned, {len(match_ids)} match(es) removed")
    return result


async def remaining_matches(db: AsyncSession, user_id: uuid.UUID) -> int:
    return await db.scalar(select(func.count(Match.id)).where(involving(user_id))) or 0
