"""
tests/test_admin.py
Tests for admin-only endpoints: review queue, reports, bans, stats, audit log.
"""

import logging
import uuid
from datetime import timedelta
from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared import audit
from shared.middleware.auth import FORCE_SIGN_OUT_HEADER
from shared.models.models import (
    AuditEventType,
    AuditLog,
    Match,
    Message,
    ModerationState,
    Profile,
    Report,
    utcnow,
)
from tests.conftest import auth_headers


async def _match(db: AsyncSession, a: Profile, b: Profile) -> Match:
    user1, user2 = Match.ordered_pair(a.id, b.id)
    match = Match(user1_id=user1, user2_id=user2, mission_1_id=1, mission_2_id=3, mission_3_id=5)
    db.add(match)
    await db.commit()
    return match


async def _report(db: AsyncSession, reporter: Profile, reported: Profile) -> Report:
    report = Report(reporter_id=reporter.id, reported_id=reported.id, reason="Harassment or bullying")
    db.add(report)
    await db.commit()
    return report


async def _audit_entries(db: AsyncSession, event_type: AuditEventType) -> list[AuditLog]:
    result = await db.execute(select(AuditLog).where(AuditLog.event_type == event_type))
    return list(result.scalars())


# ── Access Control ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_user_cannot_access_admin_endpoints(
    client: AsyncClient, db: AsyncSession, user: Profile
):
    """Regular users get 403, and the attempt is audited."""
    response = await client.get("/admin/profiles/pending", headers=auth_headers(user))
    assert response.status_code == 403

    entries = await _audit_entries(db, AuditEventType.UNAUTHORIZED_ACCESS)
    assert len(entries) == 1
    assert entries[0].actor_id == user.id
    assert entries[0].details["path"] == "/admin/profiles/pending"


@pytest.mark.asyncio
async def test_unauthenticated_cannot_access_admin(client: AsyncClient):
    response = await client.get("/admin/stats")
    assert response.status_code == 401


# ── Review Queue ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_pending_queue_is_fifo(client: AsyncClient, admin_user: Profile, make_profile):
    now = utcnow()
    newer = await make_profile(state=ModerationState.PENDING, updated_at=now)
    older = await make_profile(state=ModerationState.PENDING, updated_at=now - timedelta(hours=1))
    await make_profile(state=ModerationState.APPROVED)

    response = await client.get("/admin/profiles/pending", headers=auth_headers(admin_user))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["total_pages"] == 1
    assert [p["id"] for p in data["items"]] == [str(older.id), str(newer.id)]


@pytest.mark.asyncio
async def test_approve_pending_profile(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, make_profile
):
    pending = await make_profile(state=ModerationState.PENDING)

    response = await client.post(
        f"/admin/profiles/{pending.id}/approve", headers=auth_headers(admin_user)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    entries = await _audit_entries(db, AuditEventType.PROFILE_APPROVED)
    assert [(e.actor_id, e.target_id) for e in entries] == [(admin_user.id, pending.id)]


@pytest.mark.asyncio
async def test_reject_with_reason(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, make_profile
):
    pending = await make_profile(state=ModerationState.PENDING)

    response = await client.post(
        f"/admin/profiles/{pending.id}/reject",
        json={"reason": "Photo does not show a face"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"

    entry = (await _audit_entries(db, AuditEventType.PROFILE_REJECTED))[0]
    assert entry.details == {"reason": "Photo does not show a face"}


@pytest.mark.asyncio
@pytest.mark.parametrize("state", [ModerationState.APPROVED, ModerationState.BANNED])
async def test_only_pending_profiles_can_be_reviewed(
    client: AsyncClient, admin_user: Profile, make_profile, state
):
    profile = await make_profile(state=state)
    response = await client.post(
        f"/admin/profiles/{profile.id}/approve", headers=auth_headers(admin_user)
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_review_unknown_profile_is_404(client: AsyncClient, admin_user: Profile):
    response = await client.post(
        f"/admin/profiles/{uuid.uuid4()}/approve", headers=auth_headers(admin_user)
    )
    assert response.status_code == 404


# ── Reports ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_reports_summarizes_both_parties(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, other_user: Profile
):
    await _report(db, user, other_user)

    response = await client.get("/admin/reports", headers=auth_headers(admin_user))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    item = data["items"][0]
    assert item["reporter"]["nickname"] == "Alex"
    assert item["reported"]["nickname"] == "Bea"


@pytest.mark.asyncio
async def test_chat_history_for_report(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, other_user: Profile
):
    match = await _match(db, user, other_user)
    now = utcnow()
    db.add_all([
        Message(match_id=match.id, sender_id=other_user.id, content="first", created_at=now - timedelta(minutes=2)),
        Message(match_id=match.id, sender_id=user.id, content="second", created_at=now),
    ])
    await db.commit()
    report = await _report(db, user, other_user)

    response = await client.get(
        f"/admin/reports/{report.id}/chat-history", headers=auth_headers(admin_user)
    )
    assert response.status_code == 200
    data = response.json()
    assert data["match_id"] == str(match.id)
    assert [m["content"] for m in data["messages"]] == ["first", "second"]


@pytest.mark.asyncio
async def test_chat_history_without_match(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, other_user: Profile
):
    report = await _report(db, user, other_user)
    response = await client.get(
        f"/admin/reports/{report.id}/chat-history", headers=auth_headers(admin_user)
    )
    assert response.json()["match_id"] is None
    assert response.json()["messages"] == []


@pytest.mark.asyncio
async def test_dismiss_report(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, other_user: Profile
):
    report = await _report(db, user, other_user)
    report_id = report.id

    response = await client.post(
        f"/admin/reports/{report_id}/dismiss", headers=auth_headers(admin_user)
    )
    assert response.status_code == 200
    assert await db.scalar(select(func.count(Report.id))) == 0

    entry = (await _audit_entries(db, AuditEventType.REPORT_RESOLVED))[0]
    assert entry.details == {"report_id": str(report_id), "action": "dismissed"}


# ── Ban Enforcement ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_ban_cascade(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, other_user: Profile,
    make_profile,
):
    """
    Banning removes every match the user is in (with its messages), deletes
    the report, and leaves the profile banned. Other users' matches survive.
    """
    third = await make_profile(nickname="Cy")
    bystander = await make_profile(nickname="Dee")
    m1 = await _match(db, other_user, user)
    await _match(db, other_user, third)
    await _match(db, user, bystander)
    db.add(Message(match_id=m1.id, sender_id=other_user.id, content="hello"))
    await db.commit()
    report = await _report(db, user, other_user)
    report_id, banned_id = report.id, other_user.id

    response = await client.post(
        f"/admin/reports/{report_id}/ban",
        json={"reason": "Repeated harassment"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_banned"] is True
    assert data["status"] == "rejected"
    assert data["matches_deleted"] == 2
    assert data["remaining_matches"] == 0
    assert data["report_deleted"] is True

    db.expire_all()
    banned = await db.get(Profile, banned_id)
    assert banned.state == ModerationState.BANNED
    assert banned.banned_at is not None
    assert await db.scalar(select(func.count(Message.id))) == 0
    assert await db.scalar(select(func.count(Match.id))) == 1
    assert await db.get(Report, report_id) is None

    entry = (await _audit_entries(db, AuditEventType.USER_BANNED))[0]
    assert entry.target_id == banned_id
    assert entry.details["matches_deleted"] == 2
    assert entry.details["reason"] == "Repeated harassment"


@pytest.mark.asyncio
async def test_banned_user_is_signed_out(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, other_user: Profile
):
    """The banned user's next request is refused with a sign-out signal; then the session is dead."""
    headers = auth_headers(other_user)
    report = await _report(db, user, other_user)
    await client.post(f"/admin/reports/{report.id}/ban", headers=auth_headers(admin_user))

    first = await client.get("/matches", headers=headers)
    assert first.status_code == 403
    assert first.headers[FORCE_SIGN_OUT_HEADER] == "true"

    second = await client.get("/matches", headers=headers)
    assert second.status_code == 401


@pytest.mark.asyncio
async def test_banned_user_disappears_from_discovery(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, other_user: Profile
):
    report = await _report(db, user, other_user)
    await client.post(f"/admin/reports/{report.id}/ban", headers=auth_headers(admin_user))

    response = await client.get("/candidates", headers=auth_headers(user))
    assert response.json() == []


@pytest.mark.asyncio
async def test_admin_cannot_be_banned(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, make_profile
):
    other_admin = await make_profile(nickname="Root", role=admin_user.role)
    report = await _report(db, user, other_admin)

    response = await client.post(f"/admin/reports/{report.id}/ban", headers=auth_headers(admin_user))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_failed_ban_rolls_back_everything(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, other_user: Profile,
    monkeypatch,
):
    """A failure after the matches are deleted leaves matches, chat, report and profile as they were."""
    match = await _match(db, user, other_user)
    db.add(Message(match_id=match.id, sender_id=other_user.id, content="hello"))
    await db.commit()
    report = await _report(db, user, other_user)
    report_id, target_id = report.id, other_user.id

    real_delete = AsyncSession.delete

    async def delete_failing_on_report(session, instance):
        if isinstance(instance, Report):
            raise SQLAlchemyError("disk I/O error")
        return await real_delete(session, instance)

    monkeypatch.setattr(AsyncSession, "delete", delete_failing_on_report)

    response = await client.post(f"/admin/reports/{report_id}/ban", headers=auth_headers(admin_user))
    assert response.status_code == 503

    db.expire_all()
    target = await db.get(Profile, target_id)
    assert target.state == ModerationState.APPROVED
    assert target.banned_at is None
    assert await db.scalar(select(func.count(Match.id))) == 1
    assert await db.scalar(select(func.count(Message.id))) == 1
    assert await db.get(Report, report_id) is not None
    assert await _audit_entries(db, AuditEventType.USER_BANNED) == []

    response = await client.get("/admin/stats", headers=auth_headers(admin_user))
    data = response.json()
    assert data["banned_profiles"] == 0
    assert data["total_matches"] == 1
    assert data["open_reports"] == 1


# ── Stats and Audit Trail ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_stats_counts(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, other_user: Profile,
    make_profile,
):
    await make_profile(state=ModerationState.PENDING)
    await make_profile(state=ModerationState.BANNED)
    await _match(db, user, other_user)
    await _report(db, user, other_user)

    response = await client.get("/admin/stats", headers=auth_headers(admin_user))
    assert response.status_code == 200
    data = response.json()
    assert data["total_profiles"] == 5
    assert data["approved_profiles"] == 3
    assert data["pending_profiles"] == 1
    assert data["banned_profiles"] == 1
    assert data["total_matches"] == 1
    assert data["open_reports"] == 1


@pytest.mark.asyncio
async def test_audit_log_filters(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, user: Profile, make_profile
):
    pending = await make_profile(state=ModerationState.PENDING)
    await client.post(f"/admin/profiles/{pending.id}/approve", headers=auth_headers(admin_user))
    await client.get("/admin/stats", headers=auth_headers(user))

    response = await client.get(
        "/admin/audit-logs?event_type=profile_approved", headers=auth_headers(admin_user)
    )
    assert response.status_code == 200
    assert [e["target_id"] for e in response.json()] == [str(pending.id)]

    response = await client.get(
        f"/admin/audit-logs?user_id={user.id}", headers=auth_headers(admin_user)
    )
    assert [e["event_type"] for e in response.json()] == ["unauthorized_access"]

    response = await client.get("/admin/audit-logs?limit=1", headers=auth_headers(admin_user))
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_audit_log_limit_is_bounded(client: AsyncClient, admin_user: Profile):
    response = await client.get("/admin/audit-logs?limit=501", headers=auth_headers(admin_user))
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ConnectionRefusedError("audit store unreachable"),
    SQLAlchemyError("audit table locked"),
])
async def test_audit_write_failure_never_reaches_caller(
    client: AsyncClient, db: AsyncSession, admin_user: Profile, make_profile, monkeypatch, caplog,
    error,
):
    """The approval stands and is reported as a success; the lost entry is only logged."""
    pending = await make_profile(state=ModerationState.PENDING)
    pending_id = pending.id

    def unreachable_session():
        raise error

    monkeypatch.setattr(audit, "database", SimpleNamespace(AsyncSessionLocal=unreachable_session))
    caplog.set_level(logging.WARNING, logger="shared.audit")

    response = await client.post(
        f"/admin/profiles/{pending_id}/approve", headers=auth_headers(admin_user)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    db.expire_all()
    assert (await db.get(Profile, pending_id)).state == ModerationState.APPROVED
    assert await _audit_entries(db, AuditEventType.PROFILE_APPROVED) == []
    assert any(
        r.levelno == logging.WARNING and "Audit write failed" in r.getMessage()
        for r in caplog.records
    )
