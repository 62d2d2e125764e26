"""
services/report/router.py
Abuse report intake. Review and enforcement live under /admin.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from shared import audit
from shared.errors import ValidationError
from shared.events import bus
from shared.middleware.auth import get_current_profile
from shared.models.models import AuditEventType, Profile, Report
from shared.schemas.schemas import REPORT_REASONS, ReportCreate, ReportResponse
from shared.utils.content_guard import ensure_clean
from shared.utils.security import strip_tags
from services.ratelimit.dependencies import limit_reports

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])

REPORT_EVENT_COLUMNS = ("id", "reporter_id", "reported_id", "reason", "created_at")


@router.get("/reasons", response_model=list[str])
async def list_report_reasons():
    return list(REPORT_REASONS)


@router.post(
    "",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(limit_reports)],
)
async def submit_report(
    data: ReportCreate,
    request: Request,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """
    Repeated reports of the same user are accepted; admins see them all.
    """
    reporter_id = current_profile.id
    if data.reported_id == reporter_id:
        raise ValidationError("You cannot report yourself.", field="reported_id")
    if await db.get(Profile, data.reported_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    reason = strip_tags(data.reason).strip()
    if not reason:
        raise ValidationError("Please choose a reason.", field="reason")
    details = strip_tags(data.details).strip() if data.details else None
    if details and len(details) > settings.REPORT_DETAILS_MAX_LENGTH:
        raise ValidationError(
            f"Details must be {settings.REPORT_DETAILS_MAX_LENGTH} characters or fewer.",
            field="details",
        )
    if reason not in REPORT_REASONS:
        ensure_clean({"Reason": reason})
    ensure_clean({"Details": details})

    report = Report(
        reporter_id=reporter_id,
        reported_id=data.reported_id,
        reason=reason,
        details=details or None,
    )
    db.add(report)
    await db.commit()

    await audit.record(
        AuditEventType.REPORT_SUBMITTED,
        actor_id=reporter_id,
        target_id=data.reported_id,
        details={"report_id": str(report.id), "reason": reason},
        request=request,
    )
    await bus.publish(
        bus.ChangeEvent("reports", bus.INSERT, bus.serialize_row(report, REPORT_EVENT_COLUMNS))
    )
    logger.info(f"Report {report.id} filed against {data.reported_id}")
    return report
