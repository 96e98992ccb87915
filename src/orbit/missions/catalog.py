"""Mission catalog seed data. Existing templates are never overwritten by seeding."""

from __future__ import annotations

import logging
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from orbit.db.models import MissionTemplate
from orbit.db.upsert import dialect_insert

logger = logging.getLogger(__name__)

ActivityType = Literal["post", "comment", "starforge", "invite"]

ACTIVITY_TYPES: frozenset[str] = frozenset({"post", "comment", "starforge", "invite"})

MISSION_SEED_DATA: list[dict] = [
    {
        "key": "daily_post",
        "title": "Share something new",
        "description": "Publish 1 post today to keep the feed fresh.",
        "activity_type": "post",
        "target": 1,
        "reward_stars": 10,
        "streak_type": "daily_activity",
    },
    {
        "key": "daily_comment",
        "title": "Join the conversation",
        "description": "Leave 3 thoughtful comments.",
        "activity_type": "comment",
        "target": 3,
        "reward_stars": 8,
        "streak_type": "daily_activity",
    },
    {
        "key": "daily_starforge",
        "title": "Forge a stellar idea",
        "description": "Generate a post draft with Starforge AI.",
        "activity_type": "starforge",
        "target": 1,
        "reward_stars": 12,
    },
    {
        "key": "invite_friend",
        "title": "Bring a friend aboard",
        "description": "Invite a friend who signs up.",
        "activity_type": "invite",
        "target": 1,
        "reward_stars": 25,
    },
]


async def seed_mission_templates(db: AsyncSession) -> int:
    """Insert any missing catalog templates by key. Returns number of templates offered."""
    seeded = 0
    for template_data in MISSION_SEED_DATA:
        stmt = dialect_insert(db, MissionTemplate).values(active=True, **template_data)
        stmt = stmt.on_conflict_do_nothing(index_elements=["key"])
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d mission templates", seeded)
    return seeded
