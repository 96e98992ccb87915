"""Checkout and idempotent application of verified payments.

``apply_payment_effects`` is shared by the synchronous verify call and the
gateway webhook. The ``created -> paid`` flip is a conditional UPDATE, so
whichever trigger wins applies the effects and every later call for the
same transaction returns it untouched.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.billing.gateway import RazorpayGateway
from orbit.billing.plans import (
    Cadence,
    get_plan,
    get_star_pack,
    period_months,
    to_minor_units,
)
from orbit.db.base import utcnow
from orbit.db.models import PaymentTransaction, User
from orbit.economy.exceptions import InvalidState, NotFound
from orbit.economy.periods import add_months
from orbit.economy.wallet_service import adjust_balance, get_user
from orbit.referrals.codes import normalize_referral_code
from orbit.referrals.service import record_subscription_referral, resolve_referral_code

logger = logging.getLogger(__name__)


async def _create_transaction(
    db: AsyncSession,
    gateway: RazorpayGateway,
    user_id: int,
    kind: str,
    amount_inr: int,
    notes: dict[str, Any],
    **fields: Any,
) -> dict[str, Any]:
    reference = str(uuid.uuid4())
    amount = to_minor_units(amount_inr)
    order = await gateway.create_order(amount, reference, {"user_id": user_id, "kind": kind, **notes})

    transaction = PaymentTransaction(
        user_id=user_id,
        kind=kind,
        reference=reference,
        amount_minor_units=amount,
        currency="INR",
        gateway_order_id=order["id"],
        status="created",
        **fields,
    )
    db.add(transaction)
    await db.flush()

    logger.info("checkout %s created for user %s (order %s)", kind, user_id, order["id"])
    return {
        "order_id": order["id"],
        "amount": order.get("amount", amount),
        "currency": order.get("currency", "INR"),
        "key_id": gateway.key_id,
        "reference": reference,
    }


async def create_stars_checkout(
    db: AsyncSession,
    gateway: RazorpayGateway,
    user_id: int,
    pack_id: str,
) -> dict[str, Any]:
    """Open a gateway order for a star pack."""
    pack = get_star_pack(pack_id)
    if pack is None:
        raise NotFound("Unknown star pack")

    return await _create_transaction(
        db,
        gateway,
        user_id,
        "stars-pack",
        pack.price_inr,
        {"pack_id": pack.id},
        stars_awarded=pack.stars,
        transaction_metadata={"pack_id": pack.id},
    )


async def create_membership_checkout(
    db: AsyncSession,
    gateway: RazorpayGateway,
    user_id: int,
    tier: str,
    cadence: Cadence,
    referral_code: str | None = None,
) -> dict[str, Any]:
    """Open a gateway order for a membership plan, optionally tagged with a referral code."""
    plan = get_plan(tier)
    if plan is None:
        raise NotFound("Unknown membership tier")
    if plan.tier == "free":
        raise InvalidState("The free tier cannot be purchased")

    kind = f"membership-{cadence}"
    code = normalize_referral_code(referral_code) if referral_code else None
    return await _create_transaction(
        db,
        gateway,
        user_id,
        kind,
        plan.price_for(cadence),
        {"tier": plan.tier},
        stars_awarded=plan.monthly_stars,
        membership_tier=plan.tier,
        membership_period_months=period_months(cadence),
        transaction_metadata={"tier": plan.tier, "cadence": cadence, "referral_code": code},
    )


async def get_transaction_by_order(db: AsyncSession, order_id: str) -> PaymentTransaction:
    result = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.gateway_order_id == order_id)
        .execution_options(populate_existing=True)
    )
    transaction = result.scalar_one_or_none()
    if transaction is None:
        raise NotFound("Transaction not found")
    return transaction


async def _grant_membership(
    db: AsyncSession,
    user: User,
    transaction: PaymentTransaction,
    now: datetime,
    redis: Any | None,
) -> None:
    plan = get_plan(transaction.membership_tier or "")
    if plan is None:
        raise InvalidState(f"Unknown membership tier: {transaction.membership_tier}")

    current_expiry = user.membership_expires_at
    start = current_expiry if current_expiry is not None and current_expiry > now else now
    expires_at = add_months(start, transaction.membership_period_months or 1)

    user.membership_tier = plan.tier
    user.membership_expires_at = expires_at
    user.hide_ads = True
    user.ai_quota_limit = plan.ai_posts_per_month
    user.ai_quota_used = 0
    user.ai_quota_renews_at = expires_at if plan.unlimited_ai else add_months(now, 1)
    await db.flush()

    if transaction.stars_awarded > 0:
        await adjust_balance(
            db, user.id, transaction.stars_awarded, "membership",
            reference=transaction.reference,
            metadata={"order_id": transaction.gateway_order_id, "tier": plan.tier},
        )

    code = (transaction.transaction_metadata or {}).get("referral_code")
    if code:
        referrer = await resolve_referral_code(db, code)
        if referrer is not None and referrer.id != user.id:
            await record_subscription_referral(db, referrer.id, user.id, now=now, redis=redis)

    logger.info(
        "membership %s granted to user %s until %s",
        plan.tier, user.id, expires_at.isoformat(),
    )


async def apply_payment_effects(
    db: AsyncSession,
    transaction_id: int,
    payment_id: str | None = None,
    signature: str | None = None,
    now: datetime | None = None,
    redis: Any | None = None,
) -> PaymentTransaction:
    """Mark a verified transaction paid and deliver what was bought, at most once."""
    now = now or utcnow()

    result = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.id == transaction_id)
        .execution_options(populate_existing=True)
    )
    transaction = result.scalar_one_or_none()
    if transaction is None:
        raise NotFound("Transaction not found")
    if transaction.status == "paid":
        logger.info("duplicate payment callback for transaction %s ignored", transaction_id)
        return transaction

    values: dict[str, Any] = {"status": "paid", "paid_at": now}
    if payment_id:
        values["gateway_payment_id"] = payment_id
    if signature:
        values["gateway_signature"] = signature

    flipped = await db.execute(
        update(PaymentTransaction)
        .where(PaymentTransaction.id == transaction_id, PaymentTransaction.status != "paid")
        .values(**values)
        .returning(PaymentTransaction.id)
        .execution_options(synchronize_session=False)
    )
    if flipped.scalar_one_or_none() is None:
        logger.info("transaction %s was paid concurrently; effects already applied", transaction_id)
        await db.refresh(transaction)
        return transaction

    user = await get_user(db, transaction.user_id)
    if transaction.kind == "stars-pack":
        await adjust_balance(
            db, user.id, transaction.stars_awarded, "purchase",
            reference=transaction.reference,
            metadata={"order_id": transaction.gateway_order_id},
        )
    elif transaction.membership_tier:
        await _grant_membership(db, user, transaction, now, redis)
    else:
        logger.warning("transaction %s of kind %s carries no effects", transaction_id, transaction.kind)

    await db.refresh(transaction)
    logger.info("payment applied: transaction=%s kind=%s user=%s", transaction.id, transaction.kind, user.id)
    return transaction


async def mark_payment_failed(
    db: AsyncSession,
    order_id: str,
    payment_id: str | None = None,
) -> bool:
    """Fail a still-``created`` transaction. Returns whether anything changed."""
    values: dict[str, Any] = {"status": "failed"}
    if payment_id:
        values["gateway_payment_id"] = payment_id
    result = await db.execute(
        update(PaymentTransaction)
        .where(PaymentTransaction.gateway_order_id == order_id, PaymentTransaction.status == "created")
        .values(**values)
        .returning(PaymentTransaction.id)
        .execution_options(synchronize_session=False)
    )
    failed = result.scalar_one_or_none() is not None
    if failed:
        logger.info("transaction for order %s marked failed", order_id)
    return failed
