"""
tests/test_realtime.py
Tests for the change-event bus and per-table subscription authorization.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shared.events import bus
from shared.events.bus import ChangeEvent, EventBus, QueueSubscriber, Subscriber
from shared.models.models import Match, ModerationState, Profile
from services.realtime.router import SubscriptionDenied, authorize_subscription
from tests.conftest import auth_headers


class Recorder(Subscriber):
    def __init__(self):
        self.seen = []

    async def on_insert(self, event):
        self.seen.append(("insert", event.row["id"]))

    async def on_delete(self, event):
        self.seen.append(("delete", event.row["id"]))


class Exploding(Subscriber):
    async def on_insert(self, event):
        raise RuntimeError("subscriber bug")


async def _match(db: AsyncSession, a: Profile, b: Profile) -> Match:
    user1, user2 = Match.ordered_pair(a.id, b.id)
    match = Match(user1_id=user1, user2_id=user2, mission_1_id=1, mission_2_id=3, mission_3_id=5)
    db.add(match)
    await db.commit()
    return match


# ── Event Bus ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_dispatch_routes_by_table_and_event_type():
    event_bus = EventBus()
    recorder = Recorder()
    event_bus.subscribe("messages", recorder)

    await event_bus.dispatch(ChangeEvent("messages", bus.INSERT, {"id": "m1"}))
    await event_bus.dispatch(ChangeEvent("messages", bus.UPDATE, {"id": "m1"}))
    await event_bus.dispatch(ChangeEvent("messages", bus.DELETE, {"id": "m1"}))
    await event_bus.dispatch(ChangeEvent("matches", bus.INSERT, {"id": "x"}))

    assert recorder.seen == [("insert", "m1"), ("delete", "m1")]


@pytest.mark.asyncio
async def test_row_filter_and_unsubscribe():
    event_bus = EventBus()
    recorder = Recorder()
    unsubscribe = event_bus.subscribe("notifications", recorder, lambda row: row["user_id"] == "u1")

    await event_bus.dispatch(ChangeEvent("notifications", bus.INSERT, {"id": "n1", "user_id": "u1"}))
    await event_bus.dispatch(ChangeEvent("notifications", bus.INSERT, {"id": "n2", "user_id": "u2"}))
    assert recorder.seen == [("insert", "n1")]

    unsubscribe()
    assert event_bus.subscriber_count("notifications") == 0
    await event_bus.dispatch(ChangeEvent("notifications", bus.INSERT, {"id": "n3", "user_id": "u1"}))
    assert recorder.seen == [("insert", "n1")]


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others(caplog):
    event_bus = EventBus()
    recorder = Recorder()
    event_bus.subscribe("reports", Exploding())
    event_bus.subscribe("reports", recorder)

    await event_bus.dispatch(ChangeEvent("reports", bus.INSERT, {"id": "r1"}))
    assert recorder.seen == [("insert", "r1")]
    assert any("subscriber failed" in r.getMessage() for r in caplog.records)


def test_change_event_json():
    event = ChangeEvent("matches", bus.DELETE, {"id": "abc", "user1_id": "u1", "user2_id": "u2"})
    assert ChangeEvent.from_json(event.to_json()) == event


@pytest.mark.asyncio
async def test_sent_message_reaches_subscriber(
    client: AsyncClient, db: AsyncSession, user: Profile, other_user: Profile
):
    """A committed chat message is published to subscribers of its match only."""
    match = await _match(db, user, other_user)
    subscriber = QueueSubscriber()
    unsubscribe = bus.event_bus.subscribe(
        "messages", subscriber, lambda row: row.get("match_id") == str(match.id)
    )
    try:
        response = await client.post(
            f"/matches/{match.id}/messages", json={"content": "hello"}, headers=auth_headers(user)
        )
        assert response.status_code == 201
        event = subscriber.queue.get_nowait()
        assert event.event_type == bus.INSERT
        assert event.row["id"] == response.json()["id"]
        assert event.row["content"] == "hello"
    finally:
        unsubscribe()


# ── Subscription Authorization ─────────────────────────────────

@pytest.mark.asyncio
async def test_messages_require_participation(
    db: AsyncSession, user: Profile, other_user: Profile, make_profile
):
    match = await _match(db, user, other_user)
    stranger = await make_profile(nickname="Cy")

    row_filter = await authorize_subscription(db, user, "messages", str(match.id))
    assert row_filter({"match_id": str(match.id)}) is True
    assert row_filter({"match_id": str(uuid.uuid4())}) is False

    with pytest.raises(SubscriptionDenied):
        await authorize_subscription(db, stranger, "messages", str(match.id))
    with pytest.raises(SubscriptionDenied):
        await authorize_subscription(db, user, "messages", None)


@pytest.mark.asyncio
async def test_notifications_and_matches_are_scoped_to_user(db: AsyncSession, user: Profile):
    me = str(user.id)
    other = str(uuid.uuid4())

    notifications = await authorize_subscription(db, user, "notifications")
    assert notifications({"user_id": me}) is True
    assert notifications({"user_id": other}) is False

    matches = await authorize_subscription(db, user, "matches")
    assert matches({"user1_id": other, "user2_id": me}) is True
    assert matches({"user1_id": other, "user2_id": str(uuid.uuid4())}) is False


@pytest.mark.asyncio
async def test_profiles_and_reports_by_role(db: AsyncSession, user: Profile, admin_user: Profile):
    own = await authorize_subscription(db, user, "profiles")
    assert own({"id": str(user.id)}) is True
    assert own({"id": str(admin_user.id)}) is False

    assert await authorize_subscription(db, admin_user, "profiles") is None
    assert await authorize_subscription(db, admin_user, "reports") is None
    with pytest.raises(SubscriptionDenied):
        await authorize_subscription(db, user, "reports")


@pytest.mark.asyncio
async def test_banned_and_unknown_table_are_denied(db: AsyncSession, user: Profile, make_profile):
    banned = await make_profile(state=ModerationState.BANNED)
    with pytest.raises(SubscriptionDenied):
        await authorize_subscription(db, banned, "notifications")
    with pytest.raises(SubscriptionDenied):
        await authorize_subscription(db, user, "audit_logs")
