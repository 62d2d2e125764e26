"""
services/profile/service.py
Profile submission, moderation snapshots, public views, and account deletion.

Every owner submission lands in pending. If the profile was approved, its
public fields are copied into approved_* first, so existing matches keep
seeing what a moderator actually approved while the edit waits for review.
"""

import math
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from shared.errors import RateLimitExceeded, ValidationError
from shared.middleware.auth import TokenData
from shared.models.models import (
    AccountDeletion,
    College,
    Gender,
    LookingFor,
    Match,
    Message,
    ModerationState,
    Notification,
    PreferredGender,
    Profile,
    Report,
    Swipe,
    utcnow,
)
from shared.schemas.schemas import ProfileSubmitRequest
from shared.utils.content_guard import ensure_clean
from shared.utils.security import (
    DESCRIPTION_MAX_LENGTH,
    hash_email,
    is_valid_nickname,
    is_valid_url,
    strip_tags,
)
from services.ratelimit.limiter import RateLimitResult


# ── Validation ────────────────────────────────────────────────

def _clean_submission(data: ProfileSubmitRequest) -> dict:
    nickname = strip_tags(data.nickname)
    description = strip_tags(data.description) if data.description else None
    hobbies = [h for h in (strip_tags(h) for h in data.hobbies) if h]
    photo_urls = [u.strip() for u in data.photo_urls if u and u.strip()]

    if not photo_urls:
        raise ValidationError("Please add at least one photo.", field="photo_urls")
    if any(not is_valid_url(u) for u in photo_urls):
        raise ValidationError("Photo links must be http or https URLs.", field="photo_urls")
    if not is_valid_nickname(nickname):
        raise ValidationError(
            "Nickname must be 2-50 characters: letters, numbers, spaces, "
            "hyphens, underscores or apostrophes.",
            field="nickname",
        )
    if description and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Bio must be {DESCRIPTION_MAX_LENGTH} characters or fewer.", field="description"
        )

    ensure_clean({
        "Nickname": nickname,
        "Hobbies": ", ".join(hobbies),
        "Bio": description,
    })

    return {
        "nickname": nickname,
        "college": College(data.college),
        "year_level": data.year_level,
        "gender": Gender(data.gender),
        "preferred_gender": PreferredGender(data.preferred_gender),
        "looking_for": LookingFor(data.looking_for),
        "hobbies": hobbies,
        "description": description or None,
        "photo_urls": photo_urls,
    }


async def check_recreate_cooldown(db: AsyncSession, email_hash: str) -> None:
    """Refuse a new profile for an email whose account was deleted too recently."""
    window = timedelta(hours=settings.ACCOUNT_RECREATE_COOLDOWN_HOURS)
    now = utcnow()
    last_deleted = await db.scalar(
        select(AccountDeletion.deleted_at)
        .where(AccountDeletion.email_hash == email_hash, AccountDeletion.deleted_at > now - window)
        .order_by(AccountDeletion.deleted_at.desc())
        .limit(1)
    )
    if last_deleted is None:
        return
    if last_deleted.tzinfo is None:
        last_deleted = last_deleted.replace(tzinfo=now.tzinfo)
    now_ms = int(now.timestamp() * 1000)
    reset_ms = int((last_deleted + window).timestamp() * 1000)
    hours = max(1, math.ceil((reset_ms - now_ms) / 3_600_000))
    raise RateLimitExceeded(
        RateLimitResult(allowed=False, limit=1, remaining=0, reset=reset_ms, now=now_ms),
        detail=f"An account with this email was deleted recently. Try again in about {hours} hour(s).",
    )


# ── Submission ────────────────────────────────────────────────

async def submit_profile(
    db: AsyncSession,
    token_data: TokenData,
    existing: Optional[Profile],
    data: ProfileSubmitRequest,
) -> tuple[Profile, bool]:
    """
    Create or edit the caller's profile. Returns (profile, created).
    Nothing is written unless every check passes; the caller commits.
    """
    if not data.age_confirmed:
        raise ValidationError("You must confirm that you are at least 18 years old.", field="age_confirmed")
    terms_on_record = existing is not None and existing.terms_accepted_at is not None
    if not (data.terms_accepted or terms_on_record):
        raise ValidationError("You must accept the terms and conditions.", field="terms_accepted")

    fields = _clean_submission(data)

    created = existing is None
    if created:
        if not token_data.email:
            raise ValidationError("Your session has no email address.", field="email")
        email_hash = hash_email(token_data.email)
        await check_recreate_cooldown(db, email_hash)
        profile = Profile(id=token_data.user_id, email_hash=email_hash)
        db.add(profile)
    else:
        profile = existing
        if profile.state == ModerationState.APPROVED:
            profile.take_snapshot()

    for name, value in fields.items():
        setattr(profile, name, value)
    profile.state = ModerationState.PENDING
    if data.terms_accepted and profile.terms_accepted_at is None:
        profile.terms_accepted_at = utcnow()
    return profile, created


# ── Visibility ────────────────────────────────────────────────

def partner_view(profile: Profile) -> Optional[dict]:
    """What a match partner sees: live if approved, else the last approved snapshot."""
    if profile.state == ModerationState.APPROVED:
        return profile.public_fields()
    if profile.state == ModerationState.PENDING and profile.has_snapshot:
        return profile.public_fields(use_snapshot=True)
    return None


async def public_view(
    db: AsyncSession, viewer_id: uuid.UUID, target_id: uuid.UUID
) -> Optional[dict]:
    target = await db.get(Profile, target_id)
    if target is None:
        return None
    if target.id == viewer_id:
        return target.public_fields()
    if target.state == ModerationState.APPROVED:
        return target.public_fields()
    user1, user2 = Match.ordered_pair(viewer_id, target_id)
    matched = await db.scalar(
        select(Match.id).where(and_(Match.user1_id == user1, Match.user2_id == user2))
    )
    if matched is None:
        return None
    return partner_view(target)


# ── Deletion ──────────────────────────────────────────────────

async def delete_account(db: AsyncSession, profile: Profile) -> None:
    """Remove the profile and every row hanging off it, then leave a cooldown tombstone."""
    user_id = profile.id
    match_ids = select(Match.id).where(or_(Match.user1_id == user_id, Match.user2_id == user_id))

    for stmt in (
        delete(Message).where(or_(Message.match_id.in_(match_ids), Message.sender_id == user_id)),
        delete(Match).where(or_(Match.user1_id == user_id, Match.user2_id == user_id)),
        delete(Swipe).where(or_(Swipe.swiper_id == user_id, Swipe.swiped_id == user_id)),
        delete(Notification).where(
            or_(Notification.user_id == user_id, Notification.from_user_id == user_id)
        ),
        delete(Report).where(or_(Report.reporter_id == user_id, Report.reported_id == user_id)),
    ):
        await db.execute(stmt, execution_options={"synchronize_session": False})

    db.add(AccountDeletion(email_hash=profile.email_hash))
    await db.delete(profile)
