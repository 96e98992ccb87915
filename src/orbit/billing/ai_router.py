"""Starforge AI draft reservation endpoint.

Text generation happens elsewhere; this only settles the quota (or the star
charge) for one draft before generation starts.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.auth.dependencies import get_current_user
from orbit.billing.quota_service import reserve_ai_draft
from orbit.billing.schemas import DraftReservationResponse
from orbit.database import get_session
from orbit.db.models import User
from orbit.dependencies import get_redis_dep
from orbit.social.notification_service import publish_pending_notifications

router = APIRouter(prefix="/api/v1/ai", tags=["AI"])


@router.post("/drafts/reserve", response_model=DraftReservationResponse)
async def reserve_draft(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
) -> DraftReservationResponse:
    result = await reserve_ai_draft(db, user.id, redis=redis)
    await db.commit()
    await publish_pending_notifications(db)
    return DraftReservationResponse(**result)
