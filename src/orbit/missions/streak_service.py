"""Consecutive-day streaks, advanced when a streak-bearing mission completes."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.db.models import UserStreak
from orbit.db.upsert import dialect_insert
from orbit.economy.periods import utc_today

logger = logging.getLogger(__name__)


def next_streak_count(count: int, last_completed: date | None, today: date) -> tuple[int, bool]:
    """Apply the advance rule. Returns ``(new_count, advanced)``.

    Yesterday continues the streak, today is a no-op, anything else
    (a gap, or no history) restarts at 1.
    """
    if last_completed == today:
        return count, False
    if last_completed == today - timedelta(days=1):
        return count + 1, True
    return 1, True


def is_streak_alive(last_completed: date | None, today: date) -> bool:
    """A streak survives until a full day passes without completion."""
    return last_completed is not None and last_completed >= today - timedelta(days=1)


async def advance_streak(
    db: AsyncSession,
    user_id: int,
    streak_type: str,
    now: datetime | None = None,
) -> UserStreak:
    """Advance the user's streak of ``streak_type`` for today (UTC)."""
    today = utc_today(now)

    # Row creation races resolve on the (user_id, type) unique constraint.
    table = UserStreak.__table__
    ensure = dialect_insert(db, table).values(user_id=user_id, type=streak_type, count=0)
    ensure = ensure.on_conflict_do_nothing(index_elements=["user_id", "type"])
    await db.execute(ensure)

    result = await db.execute(
        select(UserStreak)
        .where(UserStreak.user_id == user_id, UserStreak.streak_type == streak_type)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    streak = result.scalar_one()

    new_count, advanced = next_streak_count(streak.count, streak.last_completed_date, today)
    if advanced:
        streak.count = new_count
        streak.last_completed_date = today
        await db.flush()
        logger.info("streak %s for user %s is now %d", streak_type, user_id, new_count)
    return streak


async def list_streaks(db: AsyncSession, user_id: int) -> list[UserStreak]:
    """All of a user's streaks."""
    result = await db.execute(
        select(UserStreak).where(UserStreak.user_id == user_id).order_by(UserStreak.streak_type)
    )
    return list(result.scalars().all())
