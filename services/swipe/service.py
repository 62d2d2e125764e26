"""
services/swipe/service.py
Swipe recording and match detection.

A right swipe that finds the reciprocal right swipe creates the match for the
pair. Both users can land here at the same instant; the unique constraint on
the ordered pair decides the winner and the loser reads the winner's row, so
exactly one match survives and neither caller sees an error.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import ModerationStateConflict, ValidationError
from shared.events import bus
from shared.models.models import (
    Match,
    Notification,
    NotificationType,
    Profile,
    Swipe,
    SwipeDirection,
    utcnow,
)
from services.match import service as match_service
from services.match.missions import draw_missions

logger = logging.getLogger(__name__)

MATCH_COLUMNS = ("id", "user1_id", "user2_id", "mission_number", "mission_completed", "created_at")
NOTIFICATION_COLUMNS = ("id", "user_id", "from_user_id", "type", "is_read", "created_at")


@dataclass
class SwipeOutcome:
    matched: bool = False
    was_secret_admirer: bool = False
    lost_match: bool = False
    match: Optional[Match] = None
    events: list[bus.ChangeEvent] = field(default_factory=list)

    @property
    def match_id(self) -> Optional[uuid.UUID]:
        return self.match.id if self.match else None


async def _has_swiped_right(db: AsyncSession, swiper_id: uuid.UUID, swiped_id: uuid.UUID) -> bool:
    found = await db.scalar(
        select(Swipe.id).where(
            Swipe.swiper_id == swiper_id,
            Swipe.swiped_id == swiped_id,
            Swipe.direction == SwipeDirection.RIGHT,
        )
    )
    return found is not None


async def _insert_swipe(
    db: AsyncSession, swiper_id: uuid.UUID, swiped_id: uuid.UUID, direction: SwipeDirection
) -> Swipe:
    """Insert once. A duplicate (double tap, retried request) keeps the first swipe."""
    existing = await db.scalar(
        select(Swipe).where(Swipe.swiper_id == swiper_id, Swipe.swiped_id == swiped_id)
    )
    if existing:
        return existing
    swipe = Swipe(swiper_id=swiper_id, swiped_id=swiped_id, direction=direction)
    db.add(swipe)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await db.scalar(
            select(Swipe).where(Swipe.swiper_id == swiper_id, Swipe.swiped_id == swiped_id)
        )
        if existing is None:
            raise
        return existing
    return swipe


async def _mark_like_read(db: AsyncSession, recipient_id: uuid.UUID, origin_id: uuid.UUID) -> None:
    await db.execute(
        update(Notification)
        .where(
            Notification.user_id == recipient_id,
            Notification.from_user_id == origin_id,
            Notification.type == NotificationType.LIKE,
            Notification.is_read == False,  # noqa: E712
        )
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )


async def _get_or_create_match(
    db: AsyncSession,
    swiper_id: uuid.UUID,
    swiped_id: uuid.UUID,
    looking_for: list,
) -> tuple[Match, bool]:
    """Returns (match, created). Losing the insert race is not an error."""
    existing = await match_service.find_match(db, swiper_id, swiped_id)
    if existing:
        return existing, False

    user1, user2 = Match.ordered_pair(swiper_id, swiped_id)
    mission_ids = draw_missions(looking_for)
    match = Match(
        user1_id=user1,
        user2_id=user2,
        mission_1_id=mission_ids[0],
        mission_2_id=mission_ids[1],
        mission_3_id=mission_ids[2],
        mission_number=1,
        mission_completed=False,
    )
    db.add(match)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Match race for {user1}/{user2} lost, using the existing row")
        existing = await match_service.find_match(db, swiper_id, swiped_id)
        if existing is None:
            raise
        return existing, False
    return match, True


async def _ensure_like_notification(
    db: AsyncSession, recipient_id: uuid.UUID, origin_id: uuid.UUID
) -> Optional[Notification]:
    exists = await db.scalar(
        select(Notification.id).where(
            Notification.user_id == recipient_id,
            Notification.from_user_id == origin_id,
            Notification.type == NotificationType.LIKE,
        )
    )
    if exists:
        return None
    notification = Notification(
        user_id=recipient_id, from_user_id=origin_id, type=NotificationType.LIKE
    )
    db.add(notification)
    return notification


async def record_swipe(
    db: AsyncSession,
    swiper: Profile,
    swiped_id: uuid.UUID,
    direction: SwipeDirection,
) -> SwipeOutcome:
    # Plain values only past this point: a rollback expires every loaded row.
    swiper_id = swiper.id
    if swiped_id == swiper_id:
        raise ValidationError("You cannot swipe on yourself.", field="swiped_id")
    if not swiper.is_visible:
        raise ModerationStateConflict("Your profile must be approved before you can swipe.")
    swiped = await db.get(Profile, swiped_id)
    if swiped is None or not swiped.is_visible:
        raise ModerationStateConflict("This profile is no longer available.")
    looking_for = [swiper.looking_for, swiped.looking_for]

    outcome = SwipeOutcome()
    outcome.was_secret_admirer = await _has_swiped_right(db, swiped_id, swiper_id)

    # A repeat swipe follows the stored direction, never the new request.
    stored = await _insert_swipe(db, swiper_id, swiped_id, direction)
    direction = SwipeDirection(stored.direction)

    if direction == SwipeDirection.LEFT:
        if outcome.was_secret_admirer:
            outcome.lost_match = True
            await _mark_like_read(db, swiper_id, swiped_id)
            await db.commit()
        return outcome

    if outcome.was_secret_admirer or await _has_swiped_right(db, swiped_id, swiper_id):
        match, created = await _get_or_create_match(db, swiper_id, swiped_id, looking_for)
        outcome.matched = True
        outcome.match = match
        await _mark_like_read(db, swiper_id, swiped_id)
        if created:
            notification = Notification(
                user_id=swiped_id, from_user_id=swiper_id, type=NotificationType.MATCH
            )
            db.add(notification)
        await db.commit()
        if created:
            outcome.events.append(
                bus.ChangeEvent("matches", bus.INSERT, bus.serialize_row(match, MATCH_COLUMNS))
            )
            outcome.events.append(
                bus.ChangeEvent(
                    "notifications", bus.INSERT, bus.serialize_row(notification, NOTIFICATION_COLUMNS)
                )
            )
        return outcome

    notification = await _ensure_like_notification(db, swiped_id, swiper_id)
    if notification is not None:
        await db.commit()
        outcome.events.append(
            bus.ChangeEvent(
                "notifications", bus.INSERT, bus.serialize_row(notification, NOTIFICATION_COLUMNS)
            )
        )
    return outcome
