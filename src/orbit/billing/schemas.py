"""Pydantic models for billing and AI draft endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# --- Catalog ---


class MembershipFeatureResponse(BaseModel):
    key: str
    label: str
    limit: int | None = None


class MembershipPlanResponse(BaseModel):
    tier: str
    name: str
    monthly_stars: int
    price_monthly_inr: int
    price_yearly_inr: int
    ai_posts_per_month: int
    features: list[MembershipFeatureResponse]


class StarPackResponse(BaseModel):
    id: str
    name: str
    stars: int
    price_inr: int
    bonus_percentage: int | None = None


class BillingCosts(BaseModel):
    starforge_extra_draft: int
    post_boost: int


class BillingMetaResponse(BaseModel):
    star_packs: list[StarPackResponse]
    membership_plans: list[MembershipPlanResponse]
    costs: BillingCosts


# --- Checkout ---


class StarsCheckoutRequest(BaseModel):
    pack_id: str


class MembershipCheckoutRequest(BaseModel):
    tier: Literal["star-pass", "star-unlimited"]
    cadence: Literal["monthly", "yearly"] = "monthly"
    referral_code: str | None = Field(default=None, max_length=16)


class CheckoutResponse(BaseModel):
    order_id: str
    amount: int
    currency: str
    key_id: str
    reference: str


# --- Verification ---


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class VerifyPaymentResponse(BaseModel):
    status: str
    reference: str
    stars_balance: int
    membership_tier: str
    membership_expires_at: datetime | None = None


class WebhookAck(BaseModel):
    received: bool = True


# --- AI drafts ---


class DraftReservationResponse(BaseModel):
    remaining_quota: int | None = None
    renews_at: datetime | None = None
    charged_stars: int
