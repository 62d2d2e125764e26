"""
services/ratelimit/dependencies.py
Route guards that apply a limiter class before the handler runs.
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, Request

from shared import audit
from shared.errors import RateLimitExceeded
from shared.middleware.auth import get_current_profile
from shared.models.models import AuditEventType, Profile
from services.ratelimit.limiter import RateLimiter, RateLimitResult, check_limit, get_rate_limiter

logger = logging.getLogger(__name__)


async def enforce_limit(
    limiter: RateLimiter,
    limiter_class: str,
    identifier: str,
    request: Optional[Request] = None,
    actor_id: Optional[uuid.UUID] = None,
) -> RateLimitResult:
    """Count one hit; on denial write the audit entry and raise RateLimitExceeded."""
    result = await check_limit(limiter, limiter_class, identifier)
    if not result.allowed:
        logger.warning(f"Rate limit exceeded: {limiter_class} for {identifier}")
        await audit.record(
            AuditEventType.RATE_LIMIT_EXCEEDED,
            actor_id=actor_id,
            details={"limiter_type": limiter_class, "identifier": identifier},
            request=request,
        )
        raise RateLimitExceeded(result)
    return result


class RateLimited:
    """Per-user guard: `Depends(RateLimited("message"))`."""

    def __init__(self, limiter_class: str):
        self.limiter_class = limiter_class

    async def __call__(
        self,
        request: Request,
        current_profile: Profile = Depends(get_current_profile),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        return await enforce_limit(
            limiter,
            self.limiter_class,
            str(current_profile.id),
            request=request,
            actor_id=current_profile.id,
        )


limit_profile_writes = RateLimited("profile")
limit_messages = RateLimited("message")
limit_reports = RateLimited("report")
