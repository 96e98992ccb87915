"""Daily missions: lazy per-day instances, progress recording and reward claims.

Instance lifecycle: ``active -> completed -> claimed``. When a new day
begins, yesterday's ``active``/``completed`` instances are marked ``expired``
the next time the user's missions are touched; they pay nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.db.models import MissionTemplate, UserMission
from orbit.db.upsert import dialect_insert
from orbit.economy.exceptions import InvalidState, NotFound
from orbit.economy.periods import day_key
from orbit.economy.wallet_service import adjust_balance
from orbit.leaderboard.service import increment
from orbit.missions.catalog import ACTIVITY_TYPES, ActivityType
from orbit.missions.streak_service import advance_streak
from orbit.social.notification_service import create_notification

logger = logging.getLogger(__name__)

MissionStatus = Literal["active", "completed", "claimed", "expired"]


async def ensure_instances_for_today(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> str:
    """Create today's instance of every active template if missing. Returns today's period key.

    Safe under concurrent calls: inserts that lose the race on
    (user_id, template_id, period_key) are skipped.
    """
    today = day_key(now)

    await db.execute(
        update(UserMission)
        .where(
            UserMission.user_id == user_id,
            UserMission.period_key < today,
            UserMission.status.in_(("active", "completed")),
        )
        .values(status="expired")
        .execution_options(synchronize_session=False)
    )

    templates = (
        await db.execute(select(MissionTemplate).where(MissionTemplate.active.is_(True)))
    ).scalars().all()

    for template in templates:
        # target and reward are snapshotted so later catalog edits don't touch in-flight missions
        stmt = dialect_insert(db, UserMission).values(
            user_id=user_id,
            template_id=template.id,
            period_key=today,
            progress=0,
            target=template.target,
            status="active",
            reward_stars=template.reward_stars,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["user_id", "template_id", "period_key"])
        await db.execute(stmt)

    return today


async def list_user_missions(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> list[UserMission]:
    """Today's missions for a user, in creation order."""
    today = await ensure_instances_for_today(db, user_id, now)
    result = await db.execute(
        select(UserMission)
        .where(UserMission.user_id == user_id, UserMission.period_key == today)
        .order_by(UserMission.created_at.asc(), UserMission.id.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.unique().scalars().all())


async def record_progress(
    db: AsyncSession,
    user_id: int,
    activity_type: ActivityType,
    amount: int = 1,
    now: datetime | None = None,
    redis: Any | None = None,
) -> list[UserMission]:
    """Advance every active mission of today matching ``activity_type``.

    Progress is capped at the instance's target. Instances reaching the
    target become ``completed``, advance their template's streak (if any) and
    notify the user. Returns the instances that completed on this call.
    """
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {activity_type}")
    if amount <= 0:
        raise ValueError("Progress amount must be positive")

    today = await ensure_instances_for_today(db, user_id, now)

    result = await db.execute(
        select(UserMission)
        .join(MissionTemplate, UserMission.template_id == MissionTemplate.id)
        .where(
            UserMission.user_id == user_id,
            UserMission.period_key == today,
            UserMission.status == "active",
            MissionTemplate.activity_type == activity_type,
        )
        .with_for_update(of=UserMission)
        .execution_options(populate_existing=True)
    )
    missions = list(result.unique().scalars().all())

    completed: list[UserMission] = []
    for mission in missions:
        mission.progress = min(mission.progress + amount, mission.target)
        if mission.progress >= mission.target:
            mission.status = "completed"
            completed.append(mission)
    await db.flush()

    for mission in completed:
        template = mission.template
        logger.info("mission %s (%s) completed by user %s", mission.id, template.key, user_id)
        if template.streak_type:
            await advance_streak(db, user_id, template.streak_type, now)
        await create_notification(
            db,
            user_id,
            "mission-completed",
            "Mission completed!",
            f'You finished "{template.title}". Claim your reward when you\'re ready.',
            metadata={
                "mission_id": mission.id,
                "template_key": template.key,
                "reward_stars": mission.reward_stars,
            },
            redis=redis,
        )

    return completed


async def claim_mission(
    db: AsyncSession,
    user_id: int,
    mission_id: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Pay out a completed mission exactly once.

    Returns ``{"mission": UserMission, "stars_balance": int}``.
    """
    result = await db.execute(
        select(UserMission)
        .where(UserMission.id == mission_id)
        .execution_options(populate_existing=True)
    )
    mission = result.unique().scalar_one_or_none()
    if mission is None:
        raise NotFound("Mission not found")
    if mission.user_id != user_id:
        raise InvalidState("Mission does not belong to this user")
    if mission.status == "claimed":
        raise InvalidState("Mission reward already claimed")
    if mission.status != "completed" or mission.period_key != day_key(now):
        raise InvalidState("Mission not ready to claim")

    flipped = await db.execute(
        update(UserMission)
        .where(UserMission.id == mission_id, UserMission.status == "completed")
        .values(status="claimed")
        .returning(UserMission.id)
        .execution_options(synchronize_session=False)
    )
    if flipped.scalar_one_or_none() is None:
        raise InvalidState("Mission reward already claimed")

    balance, _ = await adjust_balance(
        db, user_id, mission.reward_stars, "reward", reference=f"mission:{mission.id}",
    )
    await increment(db, "missions", user_id, mission.reward_stars, now=now)

    await db.refresh(mission)
    logger.info("mission %s claimed by user %s for %d stars", mission.id, user_id, mission.reward_stars)
    return {"mission": mission, "stars_balance": balance}
