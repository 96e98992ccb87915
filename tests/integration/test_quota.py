"""Starforge AI draft quota: lazy renewal, consumption and star-priced overage."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from orbit.billing.quota_service import effective_tier, renew_quota_if_due, reserve_ai_draft
from orbit.economy.exceptions import InsufficientFunds
from orbit.economy.wallet_service import audit_balance, get_user, list_ledger
from orbit.economy.periods import add_months
from orbit.missions.mission_service import list_user_missions

NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)


class TestEffectiveTier:
    @pytest.mark.asyncio
    async def test_lapsed_membership_counts_as_free(self, db, make_user):
        user = await make_user(membership_tier="star-pass", membership_expires_at=NOW - timedelta(days=1))
        assert effective_tier(user, NOW) == "free"

    @pytest.mark.asyncio
    async def test_active_membership(self, db, make_user):
        user = await make_user(membership_tier="star-pass", membership_expires_at=NOW + timedelta(days=1))
        assert effective_tier(user, NOW) == "star-pass"


class TestRenewal:
    @pytest.mark.asyncio
    async def test_first_use_initialises_quota(self, db, make_user):
        user = await make_user()
        assert await renew_quota_if_due(db, user, NOW) is True
        assert (user.ai_quota_limit, user.ai_quota_used) == (5, 0)
        assert user.ai_quota_renews_at == add_months(NOW, 1)

    @pytest.mark.asyncio
    async def test_not_due_yet(self, db, make_user):
        user = await make_user(ai_quota_limit=5, ai_quota_used=3, ai_quota_renews_at=NOW + timedelta(hours=1))
        assert await renew_quota_if_due(db, user, NOW) is False
        assert user.ai_quota_used == 3

    @pytest.mark.asyncio
    async def test_due_quota_resets_on_next_draft(self, db, make_user):
        user = await make_user(ai_quota_limit=5, ai_quota_used=5, ai_quota_renews_at=NOW - timedelta(minutes=1))

        result = await reserve_ai_draft(db, user.id, now=NOW)

        assert result["remaining_quota"] == 4
        assert result["charged_stars"] == 0
        assert result["renews_at"] == add_months(NOW, 1)

    @pytest.mark.asyncio
    async def test_lapsed_member_renews_at_free_allowance(self, db, make_user):
        user = await make_user(
            membership_tier="star-pass",
            membership_expires_at=NOW - timedelta(days=2),
            ai_quota_limit=60,
            ai_quota_used=12,
            ai_quota_renews_at=NOW - timedelta(days=2),
        )

        result = await reserve_ai_draft(db, user.id, now=NOW)

        assert result["remaining_quota"] == 4
        assert (await get_user(db, user.id)).ai_quota_limit == 5


class TestReserve:
    @pytest.mark.asyncio
    async def test_consumes_quota(self, db, make_user):
        user = await make_user()

        first = await reserve_ai_draft(db, user.id, now=NOW)
        second = await reserve_ai_draft(db, user.id, now=NOW)

        assert (first["remaining_quota"], second["remaining_quota"]) == (4, 3)
        assert (await get_user(db, user.id)).ai_quota_used == 2
        assert await list_ledger(db, user.id) == []

    @pytest.mark.asyncio
    async def test_overage_costs_stars(self, db, make_user):
        user = await make_user(
            stars_balance=60, ai_quota_limit=5, ai_quota_used=5, ai_quota_renews_at=NOW + timedelta(days=3),
        )

        result = await reserve_ai_draft(db, user.id, now=NOW)

        assert result == {
            "remaining_quota": 0,
            "renews_at": NOW + timedelta(days=3),
            "charged_stars": 25,
        }
        entry = (await list_ledger(db, user.id))[0]
        assert (entry.type, entry.stars, entry.balance_after) == ("ai-draft", -25, 35)
        # Used count stays at the limit; overage is paid, not counted
        assert (await get_user(db, user.id)).ai_quota_used == 5
        assert await audit_balance(db, user.id)

    @pytest.mark.asyncio
    async def test_overage_without_stars(self, db, make_user):
        user = await make_user(
            stars_balance=10, ai_quota_limit=5, ai_quota_used=5, ai_quota_renews_at=NOW + timedelta(days=3),
        )

        with pytest.raises(InsufficientFunds, match="AI quota exceeded"):
            await reserve_ai_draft(db, user.id, now=NOW)

        assert (await get_user(db, user.id)).stars_balance == 10

    @pytest.mark.asyncio
    async def test_unlimited_plan(self, db, make_user):
        user = await make_user(
            membership_tier="star-unlimited",
            membership_expires_at=NOW + timedelta(days=30),
            ai_quota_limit=-1,
            ai_quota_used=400,
            ai_quota_renews_at=NOW + timedelta(days=30),
        )

        result = await reserve_ai_draft(db, user.id, now=NOW)

        assert result["remaining_quota"] is None
        assert result["charged_stars"] == 0

    @pytest.mark.asyncio
    async def test_draft_counts_toward_starforge_mission(self, db, make_user):
        user = await make_user()

        await reserve_ai_draft(db, user.id, now=NOW)

        missions = {m.template.key: m for m in await list_user_missions(db, user.id, NOW)}
        assert missions["daily_starforge"].status == "completed"
