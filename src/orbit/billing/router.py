"""Billing API endpoints: catalog, checkout, payment verification and the gateway webhook."""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.auth.dependencies import get_current_user
from orbit.billing.gateway import (
    RazorpayGateway,
    SignatureMismatch,
    get_gateway,
    verify_payment_signature,
    verify_webhook_signature,
)
from orbit.billing.payment_service import (
    apply_payment_effects,
    create_membership_checkout,
    create_stars_checkout,
    get_transaction_by_order,
    mark_payment_failed,
)
from orbit.billing.plans import MEMBERSHIP_PLANS, STAR_PACKS
from orbit.billing.schemas import (
    BillingCosts,
    BillingMetaResponse,
    CheckoutResponse,
    MembershipCheckoutRequest,
    MembershipFeatureResponse,
    MembershipPlanResponse,
    StarPackResponse,
    StarsCheckoutRequest,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAck,
)
from orbit.database import get_session
from orbit.db.models import User
from orbit.dependencies import get_redis_dep
from orbit.economy.constants import POST_BOOST_COST, STARFORGE_EXTRA_DRAFT_COST
from orbit.economy.exceptions import NotFound
from orbit.economy.wallet_service import get_user
from orbit.social.notification_service import publish_pending_notifications

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/billing", tags=["Billing"])


@router.get("/meta", response_model=BillingMetaResponse)
async def billing_meta() -> BillingMetaResponse:
    """Star packs, membership plans and fixed star costs."""
    return BillingMetaResponse(
        star_packs=[
            StarPackResponse(
                id=p.id,
                name=p.name,
                stars=p.stars,
                price_inr=p.price_inr,
                bonus_percentage=p.bonus_percentage,
            )
            for p in STAR_PACKS
        ],
        membership_plans=[
            MembershipPlanResponse(
                tier=plan.tier,
                name=plan.name,
                monthly_stars=plan.monthly_stars,
                price_monthly_inr=plan.price_monthly_inr,
                price_yearly_inr=plan.price_yearly_inr,
                ai_posts_per_month=plan.ai_posts_per_month,
                features=[MembershipFeatureResponse(key=f.key, label=f.label, limit=f.limit) for f in plan.features],
            )
            for plan in MEMBERSHIP_PLANS
        ],
        costs=BillingCosts(starforge_extra_draft=STARFORGE_EXTRA_DRAFT_COST, post_boost=POST_BOOST_COST),
    )


@router.post("/checkout/stars", response_model=CheckoutResponse, status_code=201)
async def checkout_stars(
    body: StarsCheckoutRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    gateway: RazorpayGateway = Depends(get_gateway),
) -> CheckoutResponse:
    order = await create_stars_checkout(db, gateway, user.id, body.pack_id)
    await db.commit()
    return CheckoutResponse(**order)


@router.post("/checkout/membership", response_model=CheckoutResponse, status_code=201)
async def checkout_membership(
    body: MembershipCheckoutRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    gateway: RazorpayGateway = Depends(get_gateway),
) -> CheckoutResponse:
    order = await create_membership_checkout(
        db, gateway, user.id, body.tier, body.cadence, referral_code=body.referral_code,
    )
    await db.commit()
    return CheckoutResponse(**order)


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
) -> VerifyPaymentResponse:
    """Confirm a checkout from the client callback and deliver the purchase."""
    if not verify_payment_signature(body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature):
        raise SignatureMismatch("Signature mismatch")

    transaction = await get_transaction_by_order(db, body.razorpay_order_id)
    if transaction.user_id != user.id:
        raise NotFound("Transaction not found")

    transaction = await apply_payment_effects(
        db, transaction.id, body.razorpay_payment_id, body.razorpay_signature, redis=redis,
    )
    await db.commit()
    await publish_pending_notifications(db)

    buyer = await get_user(db, user.id)
    return VerifyPaymentResponse(
        status=transaction.status,
        reference=transaction.reference,
        stars_balance=buyer.stars_balance,
        membership_tier=buyer.membership_tier,
        membership_expires_at=buyer.membership_expires_at,
    )


def _payment_entity(event: dict[str, Any]) -> dict[str, Any]:
    """``payload.payment.entity`` of a Razorpay event, or {} when it is missing or not an object."""
    node: Any = event
    for key in ("payload", "payment", "entity"):
        node = node.get(key) if isinstance(node, dict) else None
    return node if isinstance(node, dict) else {}


@router.post("/webhook", response_model=WebhookAck)
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(default=None),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
) -> WebhookAck:
    """Gateway callback. Redeliveries and races with ``/verify`` are absorbed by idempotent effects."""
    if not x_razorpay_signature:
        raise HTTPException(status_code=400, detail="Missing signature")

    raw_body = await request.body()
    if not verify_webhook_signature(raw_body, x_razorpay_signature):
        raise SignatureMismatch("Signature mismatch")

    try:
        event = json.loads(raw_body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Malformed webhook body") from exc
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Malformed webhook body")

    event_type = event.get("event")
    payment = _payment_entity(event)
    order_id = payment.get("order_id")

    if event_type == "payment.captured" and order_id:
        try:
            transaction = await get_transaction_by_order(db, order_id)
        except NotFound:
            logger.warning("webhook_unknown_order", order_id=order_id, event_type=event_type)
            return WebhookAck()
        await apply_payment_effects(db, transaction.id, payment.get("id"), x_razorpay_signature, redis=redis)
        await db.commit()
        await publish_pending_notifications(db)
    elif event_type == "payment.failed" and order_id:
        await mark_payment_failed(db, order_id, payment.get("id"))
        await db.commit()
    else:
        logger.info("webhook_ignored", event_type=event_type)

    return WebhookAck()
