"""
services/match/router.py
Match list, match detail with its missions, and mission progression.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.events import bus
from shared.middleware.auth import get_current_profile
from shared.models.models import Match, Profile
from shared.schemas.schemas import MatchDetailResponse, MatchResponse, MissionResponse
from services.match import service as match_service
from services.match.missions import get_mission
from services.profile.service import partner_view

router = APIRouter(prefix="/matches", tags=["Matches"])

MATCH_EVENT_COLUMNS = ("id", "user1_id", "user2_id", "mission_number", "mission_completed")


# ── Helpers ───────────────────────────────────────────────────

async def _partners(db: AsyncSession, matches: List[Match], user_id: UUID) -> dict:
    ids = {m.partner_of(user_id) for m in matches}
    if not ids:
        return {}
    result = await db.execute(select(Profile).where(Profile.id.in_(ids)))
    return {p.id: p for p in result.scalars()}


def _match_payload(match: Match, partner: Profile | None) -> dict:
    return {
        "id": match.id,
        "partner": partner_view(partner) if partner else None,
        "mission_number": match.mission_number,
        "mission_completed": match.mission_completed,
        "mission_completed_at": match.mission_completed_at,
        "created_at": match.created_at,
    }


def _detail_payload(match: Match, partner: Profile | None) -> dict:
    data = _match_payload(match, partner)
    data["missions"] = [
        MissionResponse.model_validate(mission)
        for mission in (get_mission(mid) for mid in match.mission_ids)
        if mission is not None
    ]
    return data


async def _get_match_or_404(db: AsyncSession, match_id: UUID, user_id: UUID) -> Match:
    match = await match_service.get_participant_match(db, match_id, user_id)
    if not match:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Match not found")
    return match


# ── Routes ────────────────────────────────────────────────────

@router.get("", response_model=List[MatchResponse])
async def list_my_matches(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Newest first. A partner who is rejected or banned shows up without a profile."""
    matches = await match_service.list_matches(db, current_profile.id)
    partners = await _partners(db, matches, current_profile.id)
    return [
        _match_payload(m, partners.get(m.partner_of(current_profile.id))) for m in matches
    ]


@router.get("/{match_id}", response_model=MatchDetailResponse)
async def get_match(
    match_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    match = await _get_match_or_404(db, match_id, current_profile.id)
    partner = await db.get(Profile, match.partner_of(current_profile.id))
    return _detail_payload(match, partner)


@router.post("/{match_id}/missions/advance", response_model=MatchDetailResponse)
async def advance_mission(
    match_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Either partner may tick off the current mission. Completed matches stay put."""
    user_id = current_profile.id
    match = await _get_match_or_404(db, match_id, user_id)
    before = (match.mission_number, match.mission_completed)

    match = await match_service.advance_mission(db, match)

    if (match.mission_number, match.mission_completed) != before:
        await bus.publish(
            bus.ChangeEvent("matches", bus.UPDATE, bus.serialize_row(match, MATCH_EVENT_COLUMNS))
        )
    partner = await db.get(Profile, match.partner_of(user_id))
    return _detail_payload(match, partner)
