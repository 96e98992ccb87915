"""Mission and streak endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.auth.dependencies import get_current_user
from orbit.database import get_session
from orbit.db.base import utcnow
from orbit.db.models import User, UserMission
from orbit.economy.periods import day_key, utc_today
from orbit.missions.mission_service import claim_mission, list_user_missions
from orbit.missions.schemas import (
    ClaimMissionResponse,
    MissionResponse,
    MissionsResponse,
    StreakResponse,
    StreaksResponse,
)
from orbit.missions.streak_service import is_streak_alive, list_streaks

router = APIRouter(prefix="/api/v1", tags=["Missions"])


def _mission_response(mission: UserMission) -> MissionResponse:
    template = mission.template
    return MissionResponse(
        id=mission.id,
        key=template.key,
        title=template.title,
        description=template.description,
        activity_type=template.activity_type,
        progress=mission.progress,
        target=mission.target,
        status=mission.status,
        reward_stars=mission.reward_stars,
        period_key=mission.period_key,
    )


@router.get("/missions", response_model=MissionsResponse)
async def get_missions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MissionsResponse:
    """Today's missions, created on first access."""
    now = utcnow()
    missions = await list_user_missions(db, user.id, now)
    await db.commit()
    return MissionsResponse(
        period_key=day_key(now),
        missions=[_mission_response(m) for m in missions],
    )


@router.post("/missions/{mission_id}/claim", response_model=ClaimMissionResponse)
async def claim(
    mission_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ClaimMissionResponse:
    result = await claim_mission(db, user.id, mission_id)
    await db.commit()
    return ClaimMissionResponse(
        mission=_mission_response(result["mission"]),
        stars_balance=result["stars_balance"],
    )


@router.get("/missions/streaks", response_model=StreaksResponse)
async def get_streaks(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> StreaksResponse:
    today = utc_today()
    streaks = await list_streaks(db, user.id)
    return StreaksResponse(
        streaks=[
            StreakResponse(
                type=s.streak_type,
                count=s.count,
                last_completed_date=s.last_completed_date,
                alive=is_streak_alive(s.last_completed_date, today),
            )
            for s in streaks
        ]
    )

