"""Referral reward pipeline.

Signup and subscription events become unclaimed ``ReferralRecord`` rows for
the referrer. Each event also counts as an "invite" mission activity, bumps
the weekly referrals leaderboard and notifies the referrer. The referrer
cashes out every pending record at once through ``claim_pending``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.db.base import utcnow
from orbit.db.models import ReferralRecord, User
from orbit.economy.exceptions import NothingToClaim
from orbit.economy.wallet_service import adjust_balance, get_user
from orbit.leaderboard.service import increment
from orbit.missions.mission_service import record_progress
from orbit.referrals.codes import generate_unique_referral_code, normalize_referral_code
from orbit.social.notification_service import create_notification

logger = logging.getLogger(__name__)

SIGNUP_REWARD_STARS = 50
SUBSCRIPTION_REWARD_STARS = 200


async def _record_referral(
    db: AsyncSession,
    referrer_id: int,
    reward_type: str,
    reward_stars: int,
    invitee_id: int | None,
    invitee_email: str | None,
    now: datetime | None,
    redis: Any | None,
) -> ReferralRecord:
    record = ReferralRecord(
        referrer_id=referrer_id,
        invitee_id=invitee_id,
        invitee_email=invitee_email,
        reward_stars=reward_stars,
        reward_type=reward_type,
        claimed=False,
    )
    db.add(record)
    await db.flush()

    await record_progress(db, referrer_id, "invite", 1, now=now, redis=redis)
    await increment(db, "referrals", referrer_id, 1, now=now)

    if reward_type == "signup":
        notification_type = "referral-signup"
        title = "A friend joined Orbit"
        body = f"Your invite worked! {reward_stars} Stars are waiting for you."
    else:
        notification_type = "referral-subscription"
        title = "Your referral subscribed"
        body = f"A friend you invited became a member. {reward_stars} Stars are waiting for you."

    await create_notification(
        db,
        referrer_id,
        notification_type,
        title,
        body,
        metadata={"referral_id": record.id, "invitee_id": invitee_id, "reward_stars": reward_stars},
        redis=redis,
    )
    logger.info("%s referral recorded for referrer %s (invitee %s)", reward_type, referrer_id, invitee_id)
    return record


async def record_signup_referral(
    db: AsyncSession,
    referrer_id: int,
    invitee_id: int | None = None,
    invitee_email: str | None = None,
    now: datetime | None = None,
    redis: Any | None = None,
) -> ReferralRecord:
    """Reward a referrer for a signup made with their code."""
    await get_user(db, referrer_id)
    await db.execute(
        update(User)
        .where(User.id == referrer_id)
        .values(referral_invited_count=User.referral_invited_count + 1)
        .execution_options(synchronize_session=False)
    )
    return await _record_referral(
        db, referrer_id, "signup", SIGNUP_REWARD_STARS, invitee_id, invitee_email, now, redis,
    )


async def record_subscription_referral(
    db: AsyncSession,
    referrer_id: int,
    invitee_id: int,
    now: datetime | None = None,
    redis: Any | None = None,
) -> ReferralRecord:
    """Reward a referrer whose invitee bought a membership."""
    await get_user(db, referrer_id)
    return await _record_referral(
        db, referrer_id, "subscription", SUBSCRIPTION_REWARD_STARS, invitee_id, None, now, redis,
    )


async def resolve_referral_code(db: AsyncSession, code: str | None) -> User | None:
    """Find the owner of a referral code, ignoring case and surrounding whitespace."""
    if not code or not code.strip():
        return None
    result = await db.execute(select(User).where(User.referral_code == normalize_referral_code(code)))
    return result.scalar_one_or_none()


async def ensure_referral_code(db: AsyncSession, user: User) -> str:
    """Give the user a referral code on first use."""
    if not user.referral_code:
        user.referral_code = await generate_unique_referral_code(db)
        await db.flush()
    return user.referral_code


async def get_referral_dashboard(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Code, counters and referral history (newest first) for a referrer."""
    user = await get_user(db, user_id)
    code = await ensure_referral_code(db, user)

    result = await db.execute(
        select(ReferralRecord)
        .where(ReferralRecord.referrer_id == user_id)
        .order_by(ReferralRecord.created_at.desc(), ReferralRecord.id.desc())
    )
    return {
        "code": code,
        "invited_count": user.referral_invited_count,
        "rewards_claimed": user.referral_rewards_claimed,
        "records": list(result.scalars().all()),
    }


async def claim_pending(db: AsyncSession, user_id: int) -> dict[str, int]:
    """Claim every unclaimed referral reward in one pass.

    Returns ``{"stars_balance", "claimed_rewards", "claimed_stars"}``.
    Raises NothingToClaim when there is nothing pending.
    """
    await get_user(db, user_id)

    result = await db.execute(
        update(ReferralRecord)
        .where(ReferralRecord.referrer_id == user_id, ReferralRecord.claimed.is_(False))
        .values(claimed=True, claimed_at=utcnow())
        .returning(ReferralRecord.id, ReferralRecord.reward_stars)
        .execution_options(synchronize_session=False)
    )
    rows = result.all()
    if not rows:
        raise NothingToClaim("No pending rewards")

    total = sum(row.reward_stars for row in rows)
    balance, _ = await adjust_balance(
        db, user_id, total, "referral",
        metadata={"referral_ids": [row.id for row in rows]},
    )
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(referral_rewards_claimed=User.referral_rewards_claimed + len(rows))
        .execution_options(synchronize_session=False)
    )

    logger.info("user %s claimed %d referral rewards for %d stars", user_id, len(rows), total)
    return {"stars_balance": balance, "claimed_rewards": len(rows), "claimed_stars": total}
