"""
shared/models/models.py
All SQLAlchemy ORM models for the campus matching platform.
UUID primary keys throughout; JSON columns become JSONB on PostgreSQL.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from config.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enumerations ──────────────────────────────────────────────

class UserRole(str, PyEnum):
    USER = "user"
    ADMIN = "admin"


class ModerationState(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    BANNED = "banned"        # terminal, dominates every other state


class College(str, PyEnum):
    CAS = "CAS"
    CCSS = "CCSS"
    CBA = "CBA"
    CEDUC = "CEDUC"
    CDENT = "CDENT"
    CENG = "CENG"


class Gender(str, PyEnum):
    MALE = "Male"
    FEMALE = "Female"
    NON_BINARY = "Non-binary"
    OTHER = "Other"


class PreferredGender(str, PyEnum):
    MALE = "Male"
    FEMALE = "Female"
    NON_BINARY = "Non-binary"
    OTHER = "Other"
    EVERYONE = "Everyone"


class LookingFor(str, PyEnum):
    ROMANTIC = "Romantic"
    FRIENDSHIP = "Friendship"
    STUDY_BUDDY = "Study Buddy"
    NETWORKING = "Networking"
    EVERYONE = "Everyone"


class SwipeDirection(str, PyEnum):
    LEFT = "left"
    RIGHT = "right"


class NotificationType(str, PyEnum):
    LIKE = "like"
    MATCH = "match"


class AuditEventType(str, PyEnum):
    ADMIN_LOGIN = "admin_login"
    ADMIN_LOGOUT = "admin_logout"
    PROFILE_APPROVED = "profile_approved"
    PROFILE_REJECTED = "profile_rejected"
    USER_BANNED = "user_banned"
    REPORT_SUBMITTED = "report_submitted"
    REPORT_RESOLVED = "report_resolved"
    PROFILE_CREATED = "profile_created"
    PROFILE_UPDATED = "profile_updated"
    AUTH_FAILED = "auth_failed"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    UNAUTHORIZED_ACCESS = "unauthorized_access"


# ── Mixins ────────────────────────────────────────────────────

class TimestampMixin:
    """Adds created_at and updated_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


# Public fields mirrored into the approved_* snapshot.
SNAPSHOT_FIELDS = (
    "nickname",
    "photo_urls",
    "college",
    "year_level",
    "hobbies",
    "description",
    "gender",
    "preferred_gender",
)


# ── Models ────────────────────────────────────────────────────

class Profile(TimestampMixin, Base):
    """
    One row per user. The id is the identity provider's stable user id.
    Only the SHA-256 of the normalized email is stored.
    """
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    email_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), nullable=False, default=UserRole.USER
    )

    # Public attributes
    nickname: Mapped[str] = mapped_column(String(50), nullable=False)
    college: Mapped[College] = mapped_column(Enum(College), nullable=False)
    year_level: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    gender: Mapped[Optional[Gender]] = mapped_column(Enum(Gender), nullable=True)
    preferred_gender: Mapped[Optional[PreferredGender]] = mapped_column(
        Enum(PreferredGender), nullable=True
    )
    looking_for: Mapped[Optional[LookingFor]] = mapped_column(Enum(LookingFor), nullable=True)
    hobbies: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photo_urls: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Moderation
    state: Mapped[ModerationState] = mapped_column(
        Enum(ModerationState), nullable=False, default=ModerationState.PENDING
    )
    terms_accepted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    banned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Last-approved public view, shown to matches while an edit awaits review
    approved_nickname: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    approved_photo_urls: Mapped[Optional[List[str]]] = mapped_column(JSONType, nullable=True)
    approved_college: Mapped[Optional[College]] = mapped_column(Enum(College), nullable=True)
    approved_year_level: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    approved_hobbies: Mapped[Optional[List[str]]] = mapped_column(JSONType, nullable=True)
    approved_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_gender: Mapped[Optional[Gender]] = mapped_column(Enum(Gender), nullable=True)
    approved_preferred_gender: Mapped[Optional[PreferredGender]] = mapped_column(
        Enum(PreferredGender), nullable=True
    )

    __table_args__ = (
        CheckConstraint("year_level BETWEEN 1 AND 6", name="ck_profile_year_level"),
        Index("ix_profiles_state_created", "state", "created_at"),
    )

    @property
    def is_banned(self) -> bool:
        return self.state == ModerationState.BANNED

    @property
    def status(self) -> str:
        """Review status as clients know it; a ban reads as rejected."""
        if self.state == ModerationState.BANNED:
            return ModerationState.REJECTED.value
        return ModerationState(self.state).value

    @property
    def is_visible(self) -> bool:
        return self.state == ModerationState.APPROVED

    @property
    def has_snapshot(self) -> bool:
        return self.approved_nickname is not None

    def take_snapshot(self) -> None:
        for field in SNAPSHOT_FIELDS:
            value = getattr(self, field)
            if isinstance(value, list):
                value = list(value)
            setattr(self, f"approved_{field}", value)

    def public_fields(self, use_snapshot: bool = False) -> dict:
        prefix = "approved_" if use_snapshot else ""
        data = {field: getattr(self, f"{prefix}{field}") for field in SNAPSHOT_FIELDS}
        data["id"] = self.id
        data["looking_for"] = self.looking_for
        return data


class Swipe(Base):
    """Directional swipe. At most one per ordered (swiper, swiped) pair."""
    __tablename__ = "swipes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    swiper_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    swiped_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    direction: Mapped[SwipeDirection] = mapped_column(Enum(SwipeDirection), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("swiper_id", "swiped_id", name="uq_swipe_pair"),
        CheckConstraint("swiper_id <> swiped_id", name="ck_swipe_not_self"),
        Index("ix_swipes_swiped_direction", "swiped_id", "direction"),
    )


class Match(Base):
    """
    Undirected pairing stored with user1_id < user2_id so the unique
    constraint covers the unordered pair.
    """
    __tablename__ = "matches"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user1_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    user2_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    mission_1_id: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    mission_2_id: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    mission_3_id: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    mission_number: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)
    mission_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mission_completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_match_pair"),
        CheckConstraint("user1_id < user2_id", name="ck_match_ordered_pair"),
        CheckConstraint("mission_number BETWEEN 1 AND 3", name="ck_match_mission_number"),
        Index("ix_matches_user2", "user2_id"),
    )

    @staticmethod
    def ordered_pair(a: uuid.UUID, b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
        return (a, b) if str(a) < str(b) else (b, a)

    @property
    def mission_ids(self) -> list[int]:
        return [self.mission_1_id, self.mission_2_id, self.mission_3_id]

    def involves(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def partner_of(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.user2_id if self.user1_id == user_id else self.user1_id


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    match_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_messages_match_created", "match_id", "created_at"),
    )


class Notification(Base):
    """In-app signal: someone liked you, or you matched."""
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[NotificationType] = mapped_column(Enum(NotificationType), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_notifications_user_unread", "user_id", "is_read"),
    )


class Report(Base):
    __tablename__ = "reports"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reporter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    reported_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_reports_reported", "reported_id"),
    )


class AuditLog(Base):
    """Append-only security and moderation trail. Never updated or deleted."""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type: Mapped[AuditEventType] = mapped_column(Enum(AuditEventType), nullable=False)
    # No FK: entries outlive the profiles they mention.
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    target_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    details: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_audit_logs_event_created", "event_type", "created_at"),
        Index("ix_audit_logs_actor", "actor_id"),
        Index("ix_audit_logs_target", "target_id"),
    )


class AccountDeletion(Base):
    """Tombstone keyed by email hash, used to throttle delete-and-recreate cycles."""
    __tablename__ = "account_deletions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    deleted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
