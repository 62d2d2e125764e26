"""
services/chat/router.py
Per-match chat. Only the two matched users can read or write.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from shared.errors import ModerationStateConflict, ValidationError
from shared.events import bus
from shared.middleware.auth import get_current_profile
from shared.models.models import Match, Message, Profile
from shared.schemas.schemas import ChatMessageResponse, MessageCreate
from shared.utils.content_guard import ensure_clean
from shared.utils.security import strip_tags
from services.match import service as match_service
from services.ratelimit.dependencies import limit_messages

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/matches", tags=["Chat"])

MESSAGE_EVENT_COLUMNS = ("id", "match_id", "sender_id", "content", "created_at")


@router.get("/{match_id}/messages", response_model=List[ChatMessageResponse])
async def list_messages(
    match_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    match = await match_service.get_participant_match(db, match_id, current_profile.id)
    if not match:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Match not found")

    result = await db.execute(
        select(Message)
        .where(Message.match_id == match.id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return result.scalars().all()


@router.post(
    "/{match_id}/messages",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(limit_messages)],
)
async def send_message(
    match_id: UUID,
    data: MessageCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """
    Sanitized, length-checked and content-guarded before it is stored.
    A match removed by a ban, or a banned partner, refuses new messages.
    """
    match = await db.get(Match, match_id)
    if match is None:
        raise ModerationStateConflict("This match is no longer available.")
    if not match.involves(current_profile.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Match not found")

    partner = await db.get(Profile, match.partner_of(current_profile.id))
    if partner is None or partner.is_banned:
        raise ModerationStateConflict("You can no longer message this user.")

    content = strip_tags(data.content).strip()
    if not content:
        raise ValidationError("Message cannot be empty.", field="content")
    if len(content) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message must be {settings.MESSAGE_MAX_LENGTH} characters or fewer.", field="content"
        )
    ensure_clean({"Message": content})

    message = Message(match_id=match.id, sender_id=current_profile.id, content=content)
    db.add(message)
    await db.commit()

    await bus.publish(
        bus.ChangeEvent("messages", bus.INSERT, bus.serialize_row(message, MESSAGE_EVENT_COLUMNS))
    )
    return message
