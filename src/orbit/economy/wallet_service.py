"""Wallet ledger: the only sanctioned way to change a stars balance.

Every balance change is one conditional UPDATE on the user row plus one
append-only ``star_ledger`` row, inside the caller's transaction. The UPDATE
is guarded by ``stars_balance + delta >= 0`` and returns the new balance, so
concurrent debits for the same user serialize on the row lock instead of
racing on a read-modify-write in application memory.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.db.models import StarLedger, User
from orbit.economy.constants import LEDGER_ENTRY_TYPES, LEDGER_PAGE_LIMIT, LedgerEntryType
from orbit.economy.exceptions import InsufficientFunds, InvalidState, LedgerIntegrityError, NotFound
from orbit.leaderboard.service import increment
from orbit.social.notification_service import create_notification

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: int) -> User:
    """Load a user with fresh column values, or raise NotFound."""
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


async def get_balance(db: AsyncSession, user_id: int) -> int:
    """Current stars balance read straight from the database."""
    balance = await db.scalar(select(User.stars_balance).where(User.id == user_id))
    if balance is None:
        raise NotFound("User not found")
    return balance


async def adjust_balance(
    db: AsyncSession,
    user_id: int,
    delta: int,
    entry_type: LedgerEntryType,
    reference: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> tuple[int, int]:
    """Apply ``delta`` to a user's balance and append the matching ledger entry.

    Returns ``(new_balance, ledger_entry_id)``. A debit larger than the
    balance is rejected with InsufficientFunds and writes nothing. The caller
    owns the commit; balance and ledger row land in the same transaction.
    """
    if entry_type not in LEDGER_ENTRY_TYPES:
        raise ValueError(f"Invalid ledger entry type: {entry_type}")

    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.stars_balance + delta >= 0)
        .values(stars_balance=User.stars_balance + delta)
        .returning(User.stars_balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = result.scalar_one_or_none()

    if new_balance is None:
        exists = await db.scalar(select(User.id).where(User.id == user_id))
        if exists is None:
            raise NotFound("User not found")
        raise InsufficientFunds("Not enough Stars")

    entry = StarLedger(
        user_id=user_id,
        type=entry_type,
        stars=delta,
        balance_after=new_balance,
        reference=reference,
        ledger_metadata=metadata or {},
    )
    db.add(entry)
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        logger.error("Ledger append failed after balance update for user %s", user_id, exc_info=True)
        raise LedgerIntegrityError("Ledger entry could not be written") from exc

    logger.info(
        "stars adjusted user=%s delta=%+d type=%s balance=%d ref=%s",
        user_id, delta, entry_type, new_balance, reference,
    )
    return new_balance, entry.id


async def list_ledger(db: AsyncSession, user_id: int, limit: int = LEDGER_PAGE_LIMIT) -> list[StarLedger]:
    """Most recent ledger entries for a user, newest first."""
    result = await db.execute(
        select(StarLedger)
        .where(StarLedger.user_id == user_id)
        .order_by(StarLedger.created_at.desc(), StarLedger.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_balance_summary(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Balance, membership and AI quota snapshot for the billing screen."""
    user = await get_user(db, user_id)
    return {
        "stars_balance": user.stars_balance,
        "membership_tier": user.membership_tier,
        "membership_expires_at": user.membership_expires_at,
        "ai_quota": {
            "limit": user.ai_quota_limit,
            "used": user.ai_quota_used,
            "renews_at": user.ai_quota_renews_at,
        },
    }


async def send_tip(
    db: AsyncSession,
    sender_id: int,
    recipient_id: int,
    stars: int,
    message: str | None = None,
    post_id: int | None = None,
    redis: Any | None = None,
) -> int:
    """Move stars from sender to recipient and notify the recipient. Returns the sender's new balance."""
    if stars <= 0:
        raise InvalidState("Tip amount must be positive")
    if sender_id == recipient_id:
        raise InvalidState("You can't tip yourself")

    # Both rows are locked up front, always in id order, so two opposite tips
    # between the same users queue behind each other.
    locked = (
        await db.execute(
            select(User.id)
            .where(User.id.in_((sender_id, recipient_id)))
            .order_by(User.id)
            .with_for_update()
        )
    ).scalars().all()
    if recipient_id not in locked:
        raise NotFound("Recipient not found")
    if sender_id not in locked:
        raise NotFound("User not found")

    sender_balance, _ = await adjust_balance(
        db, sender_id, -stars, "tip-sent",
        metadata={"recipient_id": recipient_id, "post_id": post_id, "message": message},
    )
    await adjust_balance(
        db, recipient_id, stars, "tip-received",
        metadata={"sender_id": sender_id, "post_id": post_id, "message": message},
    )
    await increment(db, "stars-earned", recipient_id, stars)

    sender = await get_user(db, sender_id)
    body = f"{sender.display_name or sender.username} sent you {stars} Stars."
    if message:
        body = f"{body} \"{message}\""
    await create_notification(
        db,
        recipient_id,
        "tip-received",
        "You received a tip",
        body,
        metadata={"sender_id": sender_id, "stars": stars, "post_id": post_id},
        redis=redis,
    )
    return sender_balance


async def audit_balance(db: AsyncSession, user_id: int) -> bool:
    """Reconcile a user's balance against the sum of their ledger deltas."""
    balance = await get_balance(db, user_id)
    total = await db.scalar(
        select(func.coalesce(func.sum(StarLedger.stars), 0)).where(StarLedger.user_id == user_id)
    )
    if balance != total:
        logger.error("Ledger divergence for user %s: balance=%d ledger_sum=%d", user_id, balance, total)
        return False
    return True
