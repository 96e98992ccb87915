"""Post boost endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.auth.dependencies import get_current_user
from orbit.database import get_session
from orbit.db.models import User
from orbit.economy.schemas import BoostResponse
from orbit.posts.boost_service import boost_post

router = APIRouter(prefix="/api/v1/posts", tags=["Posts"])


@router.post("/{post_id}/boost", response_model=BoostResponse)
async def boost(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BoostResponse:
    """Spend stars to push a post up the feed for a while."""
    result = await boost_post(db, user.id, post_id)
    await db.commit()
    post = result["post"]
    return BoostResponse(
        post_id=post.id,
        boost_score=post.boost_score,
        boosted_until=post.boosted_until,
        stars_balance=result["stars_balance"],
    )
