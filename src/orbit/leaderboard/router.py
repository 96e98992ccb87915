"""Weekly leaderboard endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.auth.dependencies import get_current_user
from orbit.database import get_session
from orbit.db.models import User
from orbit.economy.periods import week_key
from orbit.leaderboard.schemas import LeaderboardEntryResponse, LeaderboardResponse, LeaderboardStanding
from orbit.leaderboard.service import DEFAULT_LIMIT, LeaderboardCategory, get_user_standing, top

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    category: LeaderboardCategory = Query("missions"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """This week's top users in a category, plus the caller's own standing."""
    entries = await top(db, category, limit=limit)
    standing = await get_user_standing(db, category, user.id)
    return LeaderboardResponse(
        category=category,
        period_key=week_key(),
        entries=[
            LeaderboardEntryResponse(
                rank=e["rank"],
                user_id=e["user_id"],
                username=e["username"],
                display_name=e["display_name"],
                value=e["value"],
            )
            for e in entries
        ],
        me=LeaderboardStanding(rank=standing["rank"], value=standing["value"]) if standing else None,
    )
