"""
shared/audit.py
Append-only audit trail for moderation and security events.

record() writes in its own session and commits immediately, so an entry is
never rolled back with (or blocks) the action it describes. Failures are
logged and swallowed. Callers should commit their own work first.
"""

import logging
import uuid
from typing import Optional

from fastapi import Request
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import database
from shared.models.models import AuditEventType, AuditLog
from shared.utils.security import get_client_ip

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 500


async def record(
    event_type: AuditEventType,
    actor_id: Optional[uuid.UUID] = None,
    target_id: Optional[uuid.UUID] = None,
    details: Optional[dict] = None,
    request: Optional[Request] = None,
    ip_address: Optional[str] = None,
) -> None:
    entry = AuditLog(
        event_type=event_type,
        actor_id=actor_id,
        target_id=target_id,
        details=details or {},
        ip_address=ip_address or (get_client_ip(request) if request else None),
        user_agent=request.headers.get("user-agent") if request else None,
    )
    try:
        async with database.AsyncSessionLocal() as session:
            session.add(entry)
            await session.commit()
    except (SQLAlchemyError, OSError) as exc:
        # Driver connect errors arrive unwrapped.
        logger.warning(f"Audit write failed for {event_type.value}: {exc}")


async def query(
    db: AsyncSession,
    event_type: Optional[AuditEventType] = None,
    user_id: Optional[uuid.UUID] = None,
    limit: int = DEFAULT_QUERY_LIMIT,
) -> list[AuditLog]:
    """Newest first. user_id matches either the actor or the target."""
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    if event_type:
        stmt = stmt.where(AuditLog.event_type == event_type)
    if user_id:
        stmt = stmt.where(or_(AuditLog.actor_id == user_id, AuditLog.target_id == user_id))
    stmt = stmt.limit(min(max(limit, 1), MAX_QUERY_LIMIT))
    result = await db.execute(stmt)
    return list(result.scalars())
