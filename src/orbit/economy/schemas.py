"""Pydantic models for wallet, tip and boost endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AiQuotaResponse(BaseModel):
    limit: int
    used: int
    renews_at: datetime | None = None


class BalanceResponse(BaseModel):
    stars_balance: int
    membership_tier: str
    membership_expires_at: datetime | None = None
    ai_quota: AiQuotaResponse


class LedgerEntryResponse(BaseModel):
    id: int
    type: str
    stars: int
    balance_after: int
    reference: str | None = None
    metadata: dict[str, Any] = {}
    created_at: datetime


class LedgerResponse(BaseModel):
    entries: list[LedgerEntryResponse]


class TipRequest(BaseModel):
    recipient_id: int
    stars: int = Field(gt=0, le=100_000)
    message: str | None = Field(default=None, max_length=280)
    post_id: int | None = None


class TipResponse(BaseModel):
    stars_balance: int


class BoostResponse(BaseModel):
    post_id: int
    boost_score: int
    boosted_until: datetime
    stars_balance: int
