"""Pydantic models for referral endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ReferralRecordResponse(BaseModel):
    id: int
    invitee_id: int | None = None
    invitee_email: str | None = None
    reward_stars: int
    reward_type: str
    claimed: bool
    created_at: datetime


class ReferralDashboardResponse(BaseModel):
    code: str
    invited_count: int
    rewards_claimed: int
    records: list[ReferralRecordResponse]


class ClaimReferralsResponse(BaseModel):
    stars_balance: int
    claimed_rewards: int
    claimed_stars: int
