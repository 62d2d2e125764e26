"""
services/notification/router.py
In-app notifications: likes and matches, plus the secret-admirer inbox.
Live delivery goes through the realtime feed.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import get_current_profile
from shared.models.models import (
    Match,
    ModerationState,
    Notification,
    NotificationType,
    Profile,
    utcnow,
)
from shared.schemas.schemas import AdmirerResponse, MessageResponse, NotificationResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


async def _matched_partner_ids(db: AsyncSession, user_id: UUID) -> set:
    result = await db.execute(
        select(Match.user1_id, Match.user2_id).where(
            or_(Match.user1_id == user_id, Match.user2_id == user_id)
        )
    )
    return {u2 if u1 == user_id else u1 for u1, u2 in result.all()}


# ── REST Endpoints ────────────────────────────────────────────

@router.get("", response_model=list[NotificationResponse])
async def get_my_notifications(
    unread_only: bool = Query(False),
    type: Optional[NotificationType] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Get the caller's notifications, newest first."""
    query = (
        select(Notification)
        .where(Notification.user_id == current_profile.id)
        .order_by(Notification.created_at.desc(), Notification.id)
    )

    if unread_only:
        query = query.where(Notification.is_read == False)  # noqa: E712
    if type:
        query = query.where(Notification.type == NotificationType(type))

    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    return [NotificationResponse.model_validate(n) for n in result.scalars()]


@router.get("/likes", response_model=list[AdmirerResponse])
async def get_secret_admirers(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """
    Unread likes from people the caller has not matched with yet.
    Likes left over from someone already matched are cleared here.
    """
    user_id = current_profile.id
    matched = await _matched_partner_ids(db, user_id)
    if matched:
        await db.execute(
            delete(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.type == NotificationType.LIKE,
                Notification.from_user_id.in_(matched),
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    result = await db.execute(
        select(Notification, Profile)
        .join(Profile, Profile.id == Notification.from_user_id)
        .where(
            Notification.user_id == user_id,
            Notification.type == NotificationType.LIKE,
            Notification.is_read == False,  # noqa: E712
            Profile.state == ModerationState.APPROVED,
        )
        .order_by(Notification.created_at.desc(), Notification.id)
    )
    return [
        AdmirerResponse(
            notification_id=notification.id,
            admirer=admirer.public_fields(),
            created_at=notification.created_at,
        )
        for notification, admirer in result.all()
    ]


@router.post("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == current_profile.id)
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    await db.commit()
    return MessageResponse(message="Marked as read")


@router.post("/read-all", response_model=MessageResponse)
async def mark_all_read(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    await db.execute(
        update(Notification)
        .where(Notification.user_id == current_profile.id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return MessageResponse(message="All notifications marked as read")


@router.get("/unread-count")
async def unread_count(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    count = await db.scalar(
        select(func.count(Notification.id)).where(
            Notification.user_id == current_profile.id,
            Notification.is_read == False,  # noqa: E712
        )
    )
    return {"unread_count": count or 0}
