"""Wallet API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.auth.dependencies import get_current_user
from orbit.database import get_session
from orbit.db.models import User
from orbit.dependencies import get_redis_dep
from orbit.economy.constants import LEDGER_PAGE_LIMIT
from orbit.economy.schemas import (
    AiQuotaResponse,
    BalanceResponse,
    LedgerEntryResponse,
    LedgerResponse,
    TipRequest,
    TipResponse,
)
from orbit.economy.wallet_service import get_balance_summary, list_ledger, send_tip
from orbit.social.notification_service import publish_pending_notifications

router = APIRouter(prefix="/api/v1/wallet", tags=["Wallet"])


@router.get("", response_model=BalanceResponse)
async def get_wallet(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BalanceResponse:
    """Balance, membership and AI quota for the current user."""
    summary = await get_balance_summary(db, user.id)
    return BalanceResponse(
        stars_balance=summary["stars_balance"],
        membership_tier=summary["membership_tier"],
        membership_expires_at=summary["membership_expires_at"],
        ai_quota=AiQuotaResponse(**summary["ai_quota"]),
    )


@router.get("/ledger", response_model=LedgerResponse)
async def get_ledger(
    limit: int = Query(LEDGER_PAGE_LIMIT, ge=1, le=LEDGER_PAGE_LIMIT),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LedgerResponse:
    entries = await list_ledger(db, user.id, limit=limit)
    return LedgerResponse(
        entries=[
            LedgerEntryResponse(
                id=e.id,
                type=e.type,
                stars=e.stars,
                balance_after=e.balance_after,
                reference=e.reference,
                metadata=e.ledger_metadata or {},
                created_at=e.created_at,
            )
            for e in entries
        ]
    )


@router.post("/tips", response_model=TipResponse)
async def tip(
    body: TipRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
) -> TipResponse:
    """Send stars to another user."""
    balance = await send_tip(
        db, user.id, body.recipient_id, body.stars,
        message=body.message, post_id=body.post_id, redis=redis,
    )
    await db.commit()
    await publish_pending_notifications(db)
    return TipResponse(stars_balance=balance)
