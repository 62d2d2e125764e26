"""
services/ratelimit/router.py
Public limiter check used by clients before sensitive actions.

POST /rate-limit {limiterType, identifier}
  200 {allowed, limit, remaining, reset, retryAfter: 0}
  429 {allowed: false, limit, remaining: 0, reset, retryAfter}
Clients drive their countdown UX off retryAfter (seconds) and the 429.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shared import audit
from shared.models.models import AuditEventType
from shared.schemas.schemas import RateLimitCheckRequest
from services.ratelimit.limiter import LIMITS, RateLimiter, check_limit, get_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Rate Limit"])


@router.post("/rate-limit")
async def check_rate_limit(
    data: RateLimitCheckRequest,
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    if not data.limiter_type or not data.identifier:
        return JSONResponse(status_code=400, content={"error": "Missing limiterType or identifier"})
    if data.limiter_type not in LIMITS:
        return JSONResponse(status_code=400, content={"error": "Invalid limiter type"})

    result = await check_limit(limiter, data.limiter_type, data.identifier)

    if not result.allowed:
        logger.warning(f"Rate limit exceeded: {data.limiter_type} for {data.identifier}")
        await audit.record(
            AuditEventType.RATE_LIMIT_EXCEEDED,
            details={"limiter_type": data.limiter_type, "identifier": data.identifier},
            request=request,
        )

    return JSONResponse(
        status_code=200 if result.allowed else 429,
        content={
            "allowed": result.allowed,
            "limit": result.limit,
            "remaining": result.remaining,
            "reset": result.reset,
            "retryAfter": result.retry_after,
        },
        headers=result.headers(),
    )
