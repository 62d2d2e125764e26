"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the platform.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.models.models import (
    AuditEventType,
    College,
    Gender,
    LookingFor,
    NotificationType,
    PreferredGender,
    SwipeDirection,
    UserRole,
)


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class MessageResponse(BaseSchema):
    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    detail: str
    code: Optional[str] = None


# ── Auth ──────────────────────────────────────────────────────

class SessionResponse(BaseSchema):
    user_id: uuid.UUID
    profile_exists: bool
    role: Optional[UserRole] = None
    status: Optional[str] = None
    terms_accepted: bool = False
    next: str


class FailedSignInRequest(BaseSchema):
    email: str = Field(..., min_length=3, max_length=320)


# ── Profile ───────────────────────────────────────────────────

class ProfileSubmitRequest(BaseSchema):
    nickname: str = Field(..., max_length=100)
    college: College
    year_level: int = Field(..., ge=1, le=6)
    gender: Gender
    preferred_gender: PreferredGender
    looking_for: LookingFor
    hobbies: List[str] = Field(default_factory=list)
    description: Optional[str] = Field(None, max_length=2000)
    photo_urls: List[str] = Field(default_factory=list, max_length=2)
    age_confirmed: bool = False
    terms_accepted: bool = False

    @field_validator("hobbies", mode="before")
    @classmethod
    def split_hobbies(cls, v: Union[str, List[str], None]) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [h.strip() for h in v if isinstance(h, str) and h.strip()]


class PublicProfileResponse(BaseSchema):
    id: uuid.UUID
    nickname: str
    college: College
    year_level: int
    gender: Optional[Gender] = None
    preferred_gender: Optional[PreferredGender] = None
    looking_for: Optional[LookingFor] = None
    hobbies: List[str] = []
    description: Optional[str] = None
    photo_urls: List[str] = []


class ProfileResponse(PublicProfileResponse):
    role: UserRole
    status: str
    is_banned: bool
    terms_accepted_at: Optional[datetime] = None
    approved_nickname: Optional[str] = None
    approved_photo_urls: Optional[List[str]] = None
    approved_college: Optional[College] = None
    approved_year_level: Optional[int] = None
    approved_hobbies: Optional[List[str]] = None
    approved_description: Optional[str] = None
    approved_gender: Optional[Gender] = None
    approved_preferred_gender: Optional[PreferredGender] = None
    created_at: datetime
    updated_at: datetime


# ── Swipes & Matches ──────────────────────────────────────────

class SwipeRequest(BaseSchema):
    swiped_id: uuid.UUID
    direction: SwipeDirection


class SwipeResponse(BaseSchema):
    matched: bool
    was_secret_admirer: bool
    lost_match: bool = False
    match_id: Optional[uuid.UUID] = None


class MissionResponse(BaseSchema):
    id: int
    title: str
    description: str
    location: str
    difficulty: str
    emoji: str
    category: str


class MatchResponse(BaseSchema):
    id: uuid.UUID
    partner: Optional[PublicProfileResponse] = None
    mission_number: int
    mission_completed: bool
    mission_completed_at: Optional[datetime] = None
    created_at: datetime


class MatchDetailResponse(MatchResponse):
    missions: List[MissionResponse]


# ── Chat ──────────────────────────────────────────────────────

class MessageCreate(BaseSchema):
    content: str = Field(..., min_length=1)


class ChatMessageResponse(BaseSchema):
    id: uuid.UUID
    match_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    created_at: datetime


# ── Notifications ─────────────────────────────────────────────

class NotificationResponse(BaseSchema):
    id: uuid.UUID
    type: NotificationType
    from_user_id: uuid.UUID
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class AdmirerResponse(BaseSchema):
    notification_id: uuid.UUID
    admirer: PublicProfileResponse
    created_at: datetime


# ── Reports ───────────────────────────────────────────────────

REPORT_REASONS = (
    "Harassment or bullying",
    "Inappropriate content",
    "Spam or scam",
    "Fake profile",
    "Threatening behavior",
    "Offline behavior",
    "Other",
)


class ReportCreate(BaseSchema):
    reported_id: uuid.UUID
    reason: str = Field(..., min_length=1, max_length=200)
    details: Optional[str] = None


class ReportResponse(BaseSchema):
    id: uuid.UUID
    reporter_id: uuid.UUID
    reported_id: uuid.UUID
    reason: str
    details: Optional[str] = None
    created_at: datetime


# ── Admin ─────────────────────────────────────────────────────

class AdminRejectRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)


class AdminBanRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)


class BanResponse(BaseSchema):
    user_id: uuid.UUID
    status: str
    is_banned: bool
    matches_deleted: int
    remaining_matches: int
    report_deleted: bool


class AdminStatsResponse(BaseSchema):
    total_profiles: int
    pending_profiles: int
    approved_profiles: int
    rejected_profiles: int
    banned_profiles: int
    total_swipes: int
    total_matches: int
    total_messages: int
    open_reports: int


class AuditLogResponse(BaseSchema):
    id: uuid.UUID
    event_type: AuditEventType
    actor_id: Optional[uuid.UUID] = None
    target_id: Optional[uuid.UUID] = None
    details: Dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


# ── Rate limit wire contract ──────────────────────────────────

class RateLimitCheckRequest(BaseModel):
    limiter_type: Optional[str] = Field(None, alias="limiterType")
    identifier: Optional[str] = None
