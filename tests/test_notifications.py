"""
tests/test_notifications.py
Tests for in-app notifications: listing, the secret-admirer inbox,
marking as read, unread count.
"""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import (
    Match,
    ModerationState,
    Notification,
    NotificationType,
    Profile,
    utcnow,
)
from tests.conftest import auth_headers


def _notify(recipient: Profile, sender: Profile, kind=NotificationType.LIKE, **extra) -> Notification:
    return Notification(user_id=recipient.id, from_user_id=sender.id, type=kind, **extra)


# ── Listing ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_get_notifications_empty(client: AsyncClient, user: Profile):
    """User with no notifications gets empty list."""
    response = await client.get("/notifications", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_get_notifications_returns_own_newest_first(
    client: AsyncClient, db: AsyncSession, user: Profile, other_user: Profile
):
    now = utcnow()
    older = _notify(user, other_user, created_at=now - timedelta(minutes=5))
    newer = _notify(user, other_user, NotificationType.MATCH, created_at=now)
    someone_elses = _notify(other_user, user)
    db.add_all([older, newer, someone_elses])
    await db.commit()

    response = await client.get("/notifications", headers=auth_headers(user))
    assert response.status_code == 200
    assert [n["id"] for n in response.json()] == [str(newer.id), str(older.id)]
    assert response.json()[0]["type"] == "match"


@pytest.mark.asyncio
async def test_filter_by_type_and_unread(
    client: AsyncClient, db: AsyncSession, user: Profile, other_user: Profile
):
    db.add_all([
        _notify(user, other_user),
        _notify(user, other_user, NotificationType.MATCH),
        _notify(user, other_user, is_read=True),
    ])
    await db.commit()

    likes = await client.get("/notifications?type=like", headers=auth_headers(user))
    assert {n["type"] for n in likes.json()} == {"like"}
    assert len(likes.json()) == 2

    unread = await client.get("/notifications?unread_only=true", headers=auth_headers(user))
    assert len(unread.json()) == 2
    assert all(n["is_read"] is False for n in unread.json())


# ── Secret Admirers ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_likes_inbox_shows_unread_admirers(
    client: AsyncClient, db: AsyncSession, user: Profile, make_profile
):
    admirer = await make_profile(nickname="Dee")
    seen = await make_profile(nickname="Eli")
    pending = await make_profile(nickname="Fae", state=ModerationState.PENDING)
    db.add_all([
        _notify(user, admirer),
        _notify(user, seen, is_read=True),
        _notify(user, pending),
    ])
    await db.commit()

    response = await client.get("/notifications/likes", headers=auth_headers(user))
    assert response.status_code == 200
    data = response.json()
    assert [item["admirer"]["nickname"] for item in data] == ["Dee"]
    assert "email_hash" not in data[0]["admirer"]


@pytest.mark.asyncio
async def test_likes_inbox_clears_likes_from_matched_users(
    client: AsyncClient, db: AsyncSession, user: Profile, other_user: Profile
):
    """A like from someone already matched is stale and gets deleted."""
    db.add(_notify(user, other_user))
    user1, user2 = Match.ordered_pair(user.id, other_user.id)
    db.add(Match(user1_id=user1, user2_id=user2, mission_1_id=1, mission_2_id=3, mission_3_id=5))
    await db.commit()

    response = await client.get("/notifications/likes", headers=auth_headers(user))
    assert response.json() == []

    remaining = (await db.execute(
        select(Notification).where(Notification.user_id == user.id)
    )).scalars().all()
    assert remaining == []


# ── Read State ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_mark_single_read(
    client: AsyncClient, db: AsyncSession, user: Profile, other_user: Profile
):
    notification = _notify(user, other_user)
    db.add(notification)
    await db.commit()

    response = await client.post(f"/notifications/{notification.id}/read", headers=auth_headers(user))
    assert response.status_code == 200

    await db.refresh(notification)
    assert notification.is_read is True
    assert notification.read_at is not None


@pytest.mark.asyncio
async def test_cannot_mark_someone_elses_notification(
    client: AsyncClient, db: AsyncSession, user: Profile, other_user: Profile
):
    notification = _notify(other_user, user)
    db.add(notification)
    await db.commit()

    response = await client.post(f"/notifications/{notification.id}/read", headers=auth_headers(user))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_mark_unknown_notification_is_404(client: AsyncClient, user: Profile):
    response = await client.post(f"/notifications/{uuid.uuid4()}/read", headers=auth_headers(user))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_read_all_and_unread_count(
    client: AsyncClient, db: AsyncSession, user: Profile, other_user: Profile
):
    """Unread count tracks the inbox and drops to zero after read-all."""
    db.add_all([_notify(user, other_user) for _ in range(3)])
    db.add(_notify(other_user, user))
    await db.commit()

    count = await client.get("/notifications/unread-count", headers=auth_headers(user))
    assert count.json() == {"unread_count": 3}

    response = await client.post("/notifications/read-all", headers=auth_headers(user))
    assert response.status_code == 200

    count = await client.get("/notifications/unread-count", headers=auth_headers(user))
    assert count.json() == {"unread_count": 0}

    # The other user's inbox is untouched
    count = await client.get("/notifications/unread-count", headers=auth_headers(other_user))
    assert count.json() == {"unread_count": 1}
