"""Membership plans and star packs offered for purchase.

Prices are in whole rupees; payment rows store minor units (paise).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

MembershipTier = Literal["free", "star-pass", "star-unlimited"]
Cadence = Literal["monthly", "yearly"]

UNLIMITED = -1


@dataclass(frozen=True)
class MembershipFeature:
    key: str
    label: str
    limit: int | None = None


@dataclass(frozen=True)
class MembershipPlan:
    tier: MembershipTier
    name: str
    monthly_stars: int
    price_monthly_inr: int
    price_yearly_inr: int
    ai_posts_per_month: int
    features: tuple[MembershipFeature, ...] = field(default_factory=tuple)

    @property
    def unlimited_ai(self) -> bool:
        return self.ai_posts_per_month == UNLIMITED

    def price_for(self, cadence: Cadence) -> int:
        return self.price_yearly_inr if cadence == "yearly" else self.price_monthly_inr


@dataclass(frozen=True)
class StarPack:
    id: str
    name: str
    stars: int
    price_inr: int
    bonus_percentage: int | None = None


MEMBERSHIP_PLANS: tuple[MembershipPlan, ...] = (
    MembershipPlan(
        tier="free",
        name="Explorer",
        monthly_stars=20,
        price_monthly_inr=0,
        price_yearly_inr=0,
        ai_posts_per_month=5,
        features=(
            MembershipFeature("ai-posts", "5 Starforge AI posts / month", 5),
            MembershipFeature("ad-supported", "Ad-supported experience"),
            MembershipFeature("community-access", "Join public communities"),
        ),
    ),
    MembershipPlan(
        tier="star-pass",
        name="Star Pass",
        monthly_stars=300,
        price_monthly_inr=499,
        price_yearly_inr=4999,
        ai_posts_per_month=60,
        features=(
            MembershipFeature("ai-posts", "60 Starforge AI posts / month", 60),
            MembershipFeature("ad-free", "Ad-free browsing"),
            MembershipFeature("advanced-analytics", "Advanced profile & post analytics"),
            MembershipFeature("creator-tools", "Schedule posts & unlock creator hub"),
            MembershipFeature("themes", "Premium themes & profile frames"),
        ),
    ),
    MembershipPlan(
        tier="star-unlimited",
        name="Star Federation",
        monthly_stars=1200,
        price_monthly_inr=1499,
        price_yearly_inr=14999,
        ai_posts_per_month=UNLIMITED,
        features=(
            MembershipFeature("ai-unlimited", "Unlimited Starforge AI posts"),
            MembershipFeature("mod-suite", "Pro moderation suite with AI triage"),
            MembershipFeature("priority-support", "Priority support & roadmap voting"),
            MembershipFeature("invite-only", "Access to invite-only lounges"),
            MembershipFeature("revenue-share", "Enhanced revenue share on Stars tips"),
        ),
    ),
)

STAR_PACKS: tuple[StarPack, ...] = (
    StarPack(id="starter", name="Starter Orbit", stars=150, price_inr=199),
    StarPack(id="booster", name="Cosmic Booster", stars=400, price_inr=449, bonus_percentage=5),
    StarPack(id="nebula", name="Nebula Vault", stars=1200, price_inr=1299, bonus_percentage=12),
    StarPack(id="supernova", name="Supernova Hoard", stars=2800, price_inr=2499, bonus_percentage=18),
)

_PLANS_BY_TIER = {plan.tier: plan for plan in MEMBERSHIP_PLANS}
_PACKS_BY_ID = {pack.id: pack for pack in STAR_PACKS}


def get_plan(tier: str) -> MembershipPlan | None:
    return _PLANS_BY_TIER.get(tier)


def get_star_pack(pack_id: str) -> StarPack | None:
    return _PACKS_BY_ID.get(pack_id)


def ai_quota_for_tier(tier: str) -> int:
    """Monthly AI draft allowance for a tier. Unknown tiers fall back to the free allowance."""
    plan = _PLANS_BY_TIER.get(tier) or _PLANS_BY_TIER["free"]
    return plan.ai_posts_per_month


def period_months(cadence: Cadence) -> int:
    return 12 if cadence == "yearly" else 1


def to_minor_units(amount_inr: int) -> int:
    return amount_inr * 100
