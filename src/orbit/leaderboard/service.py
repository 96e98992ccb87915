"""Weekly leaderboard aggregation.

One row per (category, user, week). Events add to ``value`` through an
INSERT ... ON CONFLICT DO UPDATE, so concurrent increments never overwrite
each other. A new week starts every user at an implicit zero.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.db.models import LeaderboardEntry, User
from orbit.db.upsert import dialect_insert
from orbit.economy.periods import week_key

logger = logging.getLogger(__name__)

LeaderboardCategory = Literal["missions", "referrals", "stars-earned"]

CATEGORIES: tuple[str, ...] = ("missions", "referrals", "stars-earned")
DEFAULT_LIMIT = 10


def validate_category(category: str) -> str:
    """Return the category or raise ValueError."""
    if category not in CATEGORIES:
        raise ValueError(f"Unknown leaderboard category: {category}")
    return category


async def increment(
    db: AsyncSession,
    category: LeaderboardCategory,
    user_id: int,
    delta: int,
    now: datetime | None = None,
) -> None:
    """Add ``delta`` to the user's value for the current week."""
    validate_category(category)
    period_key = week_key(now)

    stmt = dialect_insert(db, LeaderboardEntry).values(
        category=category,
        user_id=user_id,
        period_key=period_key,
        value=delta,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["category", "user_id", "period_key"],
        set_={"value": LeaderboardEntry.value + stmt.excluded.value},
    )
    await db.execute(stmt)
    logger.debug("leaderboard %s user=%s +%d (%s)", category, user_id, delta, period_key)


async def top(
    db: AsyncSession,
    category: LeaderboardCategory,
    limit: int = DEFAULT_LIMIT,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Current week's entries, highest value first; ties keep insertion order."""
    validate_category(category)
    period_key = week_key(now)

    result = await db.execute(
        select(LeaderboardEntry, User.username, User.display_name)
        .join(User, LeaderboardEntry.user_id == User.id)
        .where(
            LeaderboardEntry.category == category,
            LeaderboardEntry.period_key == period_key,
        )
        .order_by(LeaderboardEntry.value.desc(), LeaderboardEntry.id.asc())
        .limit(limit)
    )

    return [
        {
            "rank": rank,
            "user_id": row.LeaderboardEntry.user_id,
            "username": row.username,
            "display_name": row.display_name or row.username,
            "value": row.LeaderboardEntry.value,
            "period_key": period_key,
        }
        for rank, row in enumerate(result, start=1)
    ]


async def get_user_standing(
    db: AsyncSession,
    category: LeaderboardCategory,
    user_id: int,
    now: datetime | None = None,
) -> dict[str, Any] | None:
    """The user's value and rank this week, or None if they have no entry yet."""
    validate_category(category)
    period_key = week_key(now)

    value = await db.scalar(
        select(LeaderboardEntry.value).where(
            LeaderboardEntry.category == category,
            LeaderboardEntry.user_id == user_id,
            LeaderboardEntry.period_key == period_key,
        )
    )
    if value is None:
        return None

    ahead = await db.scalar(
        select(func.count()).select_from(LeaderboardEntry).where(
            LeaderboardEntry.category == category,
            LeaderboardEntry.period_key == period_key,
            LeaderboardEntry.value > value,
        )
    )
    return {"rank": (ahead or 0) + 1, "value": value, "period_key": period_key}
