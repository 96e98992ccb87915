"""Referral dashboard and reward claim endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.auth.dependencies import get_current_user
from orbit.database import get_session
from orbit.db.models import User
from orbit.referrals.schemas import (
    ClaimReferralsResponse,
    ReferralDashboardResponse,
    ReferralRecordResponse,
)
from orbit.referrals.service import claim_pending, get_referral_dashboard

router = APIRouter(prefix="/api/v1/referrals", tags=["Referrals"])


@router.get("", response_model=ReferralDashboardResponse)
async def dashboard(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ReferralDashboardResponse:
    data = await get_referral_dashboard(db, user.id)
    # A first visit may have minted the user's code
    await db.commit()
    return ReferralDashboardResponse(
        code=data["code"],
        invited_count=data["invited_count"],
        rewards_claimed=data["rewards_claimed"],
        records=[
            ReferralRecordResponse(
                id=r.id,
                invitee_id=r.invitee_id,
                invitee_email=r.invitee_email,
                reward_stars=r.reward_stars,
                reward_type=r.reward_type,
                claimed=r.claimed,
                created_at=r.created_at,
            )
            for r in data["records"]
        ],
    )


@router.post("/claim", response_model=ClaimReferralsResponse)
async def claim(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ClaimReferralsResponse:
    """Cash out every pending referral reward at once."""
    result = await claim_pending(db, user.id)
    await db.commit()
    return ClaimReferralsResponse(**result)
