"""Post boosts bought with stars.

A boost is ``boost_score`` plus a ``boosted_until`` deadline. Expiry is a
read-time rule: once ``boosted_until`` has passed the post ranks as if its
score were 0. Nothing sweeps or rewrites expired boosts.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.db.base import utcnow
from orbit.db.models import Post
from orbit.economy.constants import POST_BOOST_COST, POST_BOOST_DURATION_HOURS
from orbit.economy.exceptions import NotFound
from orbit.economy.wallet_service import adjust_balance

logger = logging.getLogger(__name__)


def is_boost_active(post: Post, now: datetime) -> bool:
    return post.boosted_until is not None and post.boosted_until > now


def effective_boost(post: Post, now: datetime | None = None) -> int:
    """Boost score that counts right now: the stored score while the boost runs, else 0."""
    now = now or utcnow()
    return post.boost_score if is_boost_active(post, now) else 0


def rank_by_boost(posts: Iterable[Post], now: datetime | None = None) -> list[Post]:
    """Order posts by effective boost, then newest first."""
    now = now or utcnow()
    return sorted(
        posts,
        key=lambda post: (effective_boost(post, now), post.created_at),
        reverse=True,
    )


async def boost_post(
    db: AsyncSession,
    user_id: int,
    post_id: int,
    cost: int = POST_BOOST_COST,
    duration_hours: int = POST_BOOST_DURATION_HOURS,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Spend ``cost`` stars to boost a post for ``duration_hours``.

    Boosts stack: the stored score always grows by ``cost``. A running boost
    is extended from its current deadline, a lapsed one runs again from now.
    Returns ``{"post": Post, "stars_balance": int}``.
    """
    now = now or utcnow()

    result = await db.execute(
        select(Post)
        .where(Post.id == post_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    post = result.scalar_one_or_none()
    if post is None:
        raise NotFound("Post not found")

    # Raises InsufficientFunds before the post is touched.
    balance, _ = await adjust_balance(db, user_id, -cost, "post-boost", reference=f"post:{post_id}")

    base = post.boosted_until if is_boost_active(post, now) else now
    post.boost_score += cost
    post.boosted_until = base + timedelta(hours=duration_hours)
    await db.flush()

    logger.info(
        "post %s boosted by user %s: score=%d until=%s",
        post_id, user_id, post.boost_score, post.boosted_until.isoformat(),
    )
    return {"post": post, "stars_balance": balance}
