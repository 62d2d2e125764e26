"""
services/realtime/router.py
Live change feed over WebSocket.

WS /realtime/{table}?token=<session token>[&match_id=<uuid>]

Each subscription is authorized per table and narrowed by a row filter, so
a socket only ever sees rows its user may read. Delivery is at-least-once
and best-effort; clients dedupe by id and refetch after reconnecting.
"""

import asyncio
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from config import database
from config.redis_client import get_redis
from shared.events.bus import QueueSubscriber, RowFilter, event_bus
from shared.middleware.auth import decode_token
from shared.models.models import Profile, UserRole
from services.match.service import get_participant_match

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["Realtime"])

TABLES = ("messages", "notifications", "matches", "profiles", "reports")


class SubscriptionDenied(Exception):
    pass


async def authorize_subscription(
    db: AsyncSession,
    profile: Profile,
    table: str,
    match_id: Optional[str] = None,
) -> Optional[RowFilter]:
    """
    Returns the row filter for this subscriber (None means every row),
    or raises SubscriptionDenied.
    """
    if table not in TABLES:
        raise SubscriptionDenied(f"Unknown table: {table}")
    if profile.is_banned:
        raise SubscriptionDenied("This account has been banned")

    user_id = str(profile.id)
    is_admin = profile.role == UserRole.ADMIN

    if table == "messages":
        try:
            match_uuid = uuid.UUID(match_id or "")
        except ValueError:
            raise SubscriptionDenied("match_id is required for messages")
        if await get_participant_match(db, match_uuid, profile.id) is None:
            raise SubscriptionDenied("Not a participant of this match")
        wanted = str(match_uuid)
        return lambda row: row.get("match_id") == wanted

    if table == "notifications":
        return lambda row: row.get("user_id") == user_id

    if table == "matches":
        return lambda row: user_id in (row.get("user1_id"), row.get("user2_id"))

    if table == "profiles":
        if is_admin:
            return None
        return lambda row: row.get("id") == user_id

    # reports
    if not is_admin:
        raise SubscriptionDenied("Admins only")
    return None


async def _pump(websocket: WebSocket, subscriber: QueueSubscriber) -> None:
    while True:
        event = await subscriber.queue.get()
        await websocket.send_text(event.to_json())


async def _drain(websocket: WebSocket) -> None:
    # Clients do not send anything; this only notices the disconnect.
    while True:
        await websocket.receive_text()


@router.websocket("/{table}")
async def realtime_feed(websocket: WebSocket, table: str):
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication required")
        return

    try:
        token_data = await decode_token(token, get_redis())
        async with database.AsyncSessionLocal() as db:
            profile = await db.get(Profile, token_data.user_id)
            if profile is None:
                raise SubscriptionDenied("Profile not found")
            row_filter = await authorize_subscription(
                db, profile, table, websocket.query_params.get("match_id")
            )
            user_id = profile.id
    except (HTTPException, SubscriptionDenied) as exc:
        reason = exc.detail if isinstance(exc, HTTPException) else str(exc)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)
        return

    await websocket.accept()
    subscriber = QueueSubscriber()
    unsubscribe = event_bus.subscribe(table, subscriber, row_filter)
    logger.info(f"Realtime subscriber {user_id} joined {table}")

    tasks = [
        asyncio.create_task(_pump(websocket, subscriber)),
        asyncio.create_task(_drain(websocket)),
    ]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc and not isinstance(exc, WebSocketDisconnect):
                logger.warning(f"Realtime feed for {user_id} closed: {exc}")
    finally:
        for task in tasks:
            task.cancel()
        unsubscribe()
        logger.info(f"Realtime subscriber {user_id} left {table}")
