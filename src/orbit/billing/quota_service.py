"""Starforge AI draft quota.

The quota lives on the user row and renews lazily: nothing resets it on a
schedule, the next draft request past ``renews_at`` does.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.billing.plans import UNLIMITED, ai_quota_for_tier
from orbit.db.base import utcnow
from orbit.db.models import User
from orbit.economy.constants import STARFORGE_EXTRA_DRAFT_COST
from orbit.economy.exceptions import InsufficientFunds
from orbit.economy.periods import add_months
from orbit.economy.wallet_service import adjust_balance, get_user
from orbit.missions.mission_service import record_progress

logger = logging.getLogger(__name__)


def effective_tier(user: User, now: datetime) -> str:
    """The tier whose allowance applies now. A lapsed membership counts as free."""
    expires_at = user.membership_expires_at
    if user.membership_tier != "free" and expires_at is not None and expires_at <= now:
        return "free"
    return user.membership_tier


async def renew_quota_if_due(db: AsyncSession, user: User, now: datetime | None = None) -> bool:
    """Reset limit/used/renews_at when the renewal time has passed. Returns whether it renewed."""
    now = now or utcnow()
    if user.ai_quota_renews_at is not None and user.ai_quota_renews_at > now:
        return False

    user.ai_quota_limit = ai_quota_for_tier(effective_tier(user, now))
    user.ai_quota_used = 0
    user.ai_quota_renews_at = add_months(now, 1)
    await db.flush()
    logger.info("AI quota renewed for user %s: limit=%d", user.id, user.ai_quota_limit)
    return True


async def reserve_ai_draft(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
    redis: Any | None = None,
) -> dict[str, Any]:
    """Consume one draft from the quota, or charge stars once it's used up.

    Returns ``{"remaining_quota", "renews_at", "charged_stars"}``;
    ``remaining_quota`` is None for unlimited plans.
    """
    now = now or utcnow()
    user = await get_user(db, user_id)
    await renew_quota_if_due(db, user, now)

    consumed = await db.execute(
        update(User)
        .where(
            User.id == user_id,
            or_(User.ai_quota_limit == UNLIMITED, User.ai_quota_used < User.ai_quota_limit),
        )
        .values(ai_quota_used=User.ai_quota_used + 1)
        .returning(User.ai_quota_limit, User.ai_quota_used)
        .execution_options(synchronize_session=False)
    )
    row = consumed.first()

    charged = 0
    if row is not None:
        limit, used = row.ai_quota_limit, row.ai_quota_used
    else:
        # Quota exhausted: one extra draft for a fixed star price.
        try:
            await adjust_balance(db, user_id, -STARFORGE_EXTRA_DRAFT_COST, "ai-draft")
        except InsufficientFunds:
            raise InsufficientFunds(
                "AI quota exceeded. Upgrade to a Star Pass or purchase more Stars."
            ) from None
        charged = STARFORGE_EXTRA_DRAFT_COST
        limit, used = user.ai_quota_limit, user.ai_quota_used

    await record_progress(db, user_id, "starforge", 1, now=now, redis=redis)

    return {
        "remaining_quota": None if limit == UNLIMITED else max(limit - used, 0),
        "renews_at": user.ai_quota_renews_at,
        "charged_stars": charged,
    }
