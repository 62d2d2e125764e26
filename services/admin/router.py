"""
services/admin/router.py
Admin-only endpoints: profile review queue, abuse reports and enforcement,
platform stats, and the audit trail.

Every decision is written to the audit trail after the action commits.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared import audit
from shared.events import bus
from shared.middleware.auth import require_admin
from shared.models.models import (
    AuditEventType,
    Match,
    Message,
    ModerationState,
    Profile,
    Report,
    Swipe,
    UserRole,
)
from shared.schemas.schemas import (
    AdminBanRequest,
    AdminRejectRequest,
    AdminStatsResponse,
    AuditLogResponse,
    BanResponse,
    ChatMessageResponse,
    MessageResponse,
    ProfileResponse,
)
from services.admin import service as admin_service
from services.match.service import find_match

router = APIRouter(prefix="/admin", tags=["Admin"])

PROFILE_EVENT_COLUMNS = ("id", "state", "updated_at")


# ── Helpers ────────────────────────────────────────────────────────────────────

def _summary(profile: Optional[Profile]) -> Optional[dict]:
    if profile is None:
        return None
    return {
        "id": str(profile.id),
        "nickname": profile.nickname,
        "college": profile.college.value if profile.college else None,
        "status": profile.status,
        "is_banned": profile.is_banned,
    }


async def _get_profile_or_404(db: AsyncSession, profile_id: UUID) -> Profile:
    profile = await db.get(Profile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


async def _get_report_or_404(db: AsyncSession, report_id: UUID) -> Report:
    report = await db.get(Report, report_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


# ── Profile Review Queue ───────────────────────────────────────────────────────

@router.get("/profiles/pending")
async def get_pending_profiles(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    current_admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Profiles awaiting review, oldest first (FIFO queue)."""
    query = (
        select(Profile)
        .where(Profile.state == ModerationState.PENDING)
        .order_by(Profile.updated_at.asc(), Profile.id.asc())
    )
    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))

    return {
        "items": [ProfileResponse.model_validate(p).model_dump(mode="json") for p in result.scalars()],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": -(-total // page_size),  # ceiling division
    }


async def _review(
    db: AsyncSession,
    profile_id: UUID,
    approve: bool,
    admin: Profile,
    request: Request,
    reason: Optional[str] = None,
) -> Profile:
    admin_id = admin.id
    profile = await _get_profile_or_404(db, profile_id)
    admin_service.review_profile(profile, approve)
    await db.commit()
    await db.refresh(profile)

    details = {"reason": reason} if reason else {}
    await audit.record(
        AuditEventType.PROFILE_APPROVED if approve else AuditEventType.PROFILE_REJECTED,
        actor_id=admin_id,
        target_id=profile.id,
        details=details,
        request=request,
    )
    await bus.publish(
        bus.ChangeEvent("profiles", bus.UPDATE, bus.serialize_row(profile, PROFILE_EVENT_COLUMNS))
    )
    return profile


@router.post("/profiles/{profile_id}/approve", response_model=ProfileResponse)
async def approve_profile(
    profile_id: UUID,
    request: Request,
    current_admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Pending → approved. The profile becomes a swipe candidate."""
    return await _review(db, profile_id, True, current_admin, request)


@router.post("/profiles/{profile_id}/reject", response_model=ProfileResponse)
async def reject_profile(
    profile_id: UUID,
    request: Request,
    data: Optional[AdminRejectRequest] = None,
    current_admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Pending → rejected. The user can fix the profile and resubmit."""
    reason = data.reason if data else None
    return await _review(db, profile_id, False, current_admin, request, reason=reason)


# ── Abuse Reports ──────────────────────────────────────────────────────────────

@router.get("/reports")
async def list_reports(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Open reports, newest first, with both parties summarized."""
    total = await db.scalar(select(func.count(Report.id)))
    result = await db.execute(
        select(Report)
        .order_by(Report.created_at.desc(), Report.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    reports = list(result.scalars())

    ids = {r.reporter_id for r in reports} | {r.reported_id for r in reports}
    profiles = {}
    if ids:
        rows = await db.execute(select(Profile).where(Profile.id.in_(ids)))
        profiles = {p.id: p for p in rows.scalars()}

    return {
        "items": [
            {
                "id": str(r.id),
                "reason": r.reason,
                "details": r.details,
                "created_at": r.created_at.isoformat(),
                "reporter": _summary(profiles.get(r.reporter_id)),
                "reported": _summary(profiles.get(r.reported_id)),
            }
            for r in reports
        ],
        "total": total or 0,
        "page": page,
        "page_size": page_size,
    }


@router.get("/reports/{report_id}/chat-history")
async def get_report_chat_history(
    report_id: UUID,
    current_admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Read-only: the messages between reporter and reported, oldest first."""
    report = await _get_report_or_404(db, report_id)
    match = await find_match(db, report.reporter_id, report.reported_id)
    messages = []
    if match:
        result = await db.execute(
            select(Message)
            .where(Message.match_id == match.id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        messages = [
            ChatMessageResponse.model_validate(m).model_dump(mode="json") for m in result.scalars()
        ]
    return {
        "report_id": str(report.id),
        "match_id": str(match.id) if match else None,
        "messages": messages,
    }


@router.post("/reports/{report_id}/ban", response_model=BanResponse)
async def ban_reported_user(
    report_id: UUID,
    request: Request,
    data: Optional[AdminBanRequest] = None,
    current_admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Ban the reported user:
    - deletes every match involving them (and the chat inside)
    - sets the profile to banned, which reads as rejected
    - deletes this report
    Their live sessions are refused and signed out on the next request.
    """
    admin_id = current_admin.id
    report = await _get_report_or_404(db, report_id)
    target = await _get_profile_or_404(db, report.reported_id)
    if target.role == UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot ban admin users")

    result = await admin_service.ban_user(db, report)

    await audit.record(
        AuditEventType.USER_BANNED,
        actor_id=admin_id,
        target_id=result.user_id,
        details={
            "reason": data.reason if data else None,
            "report_id": str(result.report_id),
            "matches_deleted": result.matches_deleted,
        },
        request=request,
    )
    for row in result.deleted_matches:
        await bus.publish(bus.ChangeEvent("matches", bus.DELETE, row))

    # Report what is actually stored now, not what we asked for
    db.expire_all()
    banned = await _get_profile_or_404(db, result.user_id)
    await bus.publish(
        bus.ChangeEvent("profiles", bus.UPDATE, bus.serialize_row(banned, PROFILE_EVENT_COLUMNS))
    )
    return BanResponse(
        user_id=banned.id,
        status=banned.status,
        is_banned=banned.is_banned,
        matches_deleted=result.matches_deleted,
        remaining_matches=await admin_service.remaining_matches(db, banned.id),
        report_deleted=await db.get(Report, result.report_id) is None,
    )


@router.post("/reports/{report_id}/dismiss", response_model=MessageResponse)
async def dismiss_report(
    report_id: UUID,
    request: Request,
    current_admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Close a report without action."""
    admin_id = current_admin.id
    report = await _get_report_or_404(db, report_id)
    reported_id = report.reported_id
    await db.delete(report)
    await db.commit()

    await audit.record(
        AuditEventType.REPORT_RESOLVED,
        actor_id=admin_id,
        target_id=reported_id,
        details={"report_id": str(report_id), "action": "dismissed"},
        request=request,
    )
    await bus.publish(bus.ChangeEvent("reports", bus.DELETE, {"id": str(report_id)}))
    return MessageResponse(message="Report dismissed")


# ── Platform Stats ─────────────────────────────────────────────────────────────

@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(
    current_admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    by_state = dict(
        (await db.execute(select(Profile.state, func.count(Profile.id)).group_by(Profile.state))).all()
    )
    return AdminStatsResponse(
        total_profiles=sum(by_state.values()),
        pending_profiles=by_state.get(ModerationState.PENDING, 0),
        approved_profiles=by_state.get(ModerationState.APPROVED, 0),
        rejected_profiles=by_state.get(ModerationState.REJECTED, 0),
        banned_profiles=by_state.get(ModerationState.BANNED, 0),
        total_swipes=await db.scalar(select(func.count(Swipe.id))) or 0,
        total_matches=await db.scalar(select(func.count(Match.id))) or 0,
        total_messages=await db.scalar(select(func.count(Message.id))) or 0,
        open_reports=await db.scalar(select(func.count(Report.id))) or 0,
    )


# ── Audit Trail (Read-Only) ────────────────────────────────────────────────────

@router.get("/audit-logs", response_model=list[AuditLogResponse])
async def get_audit_logs(
    event_type: Optional[AuditEventType] = Query(None),
    user_id: Optional[UUID] = Query(None),
    limit: int = Query(audit.DEFAULT_QUERY_LIMIT, ge=1, le=audit.MAX_QUERY_LIMIT),
    current_admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Newest first. user_id matches the acting or the target user."""
    return await audit.query(db, event_type=event_type, user_id=user_id, limit=limit)
