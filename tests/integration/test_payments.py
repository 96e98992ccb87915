"""Checkout and payment application: idempotency, membership stacking and referral rewards."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from orbit.billing.payment_service import (
    apply_payment_effects,
    create_membership_checkout,
    create_stars_checkout,
    get_transaction_by_order,
    mark_payment_failed,
)
from orbit.db.models import ReferralRecord, StarLedger
from orbit.economy.exceptions import InvalidState, NotFound
from orbit.economy.wallet_service import audit_balance, get_user, list_ledger
from orbit.referrals.service import ensure_referral_code

NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)


async def _paid(db, order_id: str, **kwargs):
    transaction = await get_transaction_by_order(db, order_id)
    return await apply_payment_effects(db, transaction.id, **kwargs)


class TestCheckout:
    @pytest.mark.asyncio
    async def test_stars_checkout_records_transaction(self, db, make_user, gateway):
        user = await make_user()
        checkout = await create_stars_checkout(db, gateway, user.id, "booster")

        assert checkout["order_id"] == "order_0001"
        assert checkout["amount"] == 44900
        assert checkout["currency"] == "INR"
        assert checkout["key_id"] == "rzp_test_key"

        transaction = await get_transaction_by_order(db, "order_0001")
        assert transaction.status == "created"
        assert transaction.kind == "stars-pack"
        assert transaction.stars_awarded == 400
        assert transaction.reference == checkout["reference"]
        assert gateway.orders[0]["receipt"] == checkout["reference"]

    @pytest.mark.asyncio
    async def test_unknown_pack(self, db, make_user, gateway):
        user = await make_user()
        with pytest.raises(NotFound):
            await create_stars_checkout(db, gateway, user.id, "galaxy")
        assert gateway.orders == []

    @pytest.mark.asyncio
    async def test_membership_checkout_yearly(self, db, make_user, gateway):
        user = await make_user()
        checkout = await create_membership_checkout(db, gateway, user.id, "star-pass", "yearly", "  abcd1234 ")

        assert checkout["amount"] == 499900
        transaction = await get_transaction_by_order(db, checkout["order_id"])
        assert transaction.kind == "membership-yearly"
        assert transaction.membership_tier == "star-pass"
        assert transaction.membership_period_months == 12
        assert transaction.stars_awarded == 300
        assert transaction.transaction_metadata["referral_code"] == "ABCD1234"

    @pytest.mark.asyncio
    async def test_free_and_unknown_tiers_cannot_be_bought(self, db, make_user, gateway):
        user = await make_user()
        with pytest.raises(InvalidState):
            await create_membership_checkout(db, gateway, user.id, "free", "monthly")
        with pytest.raises(NotFound):
            await create_membership_checkout(db, gateway, user.id, "star-lord", "monthly")


class TestStarsPack:
    @pytest.mark.asyncio
    async def test_applied_once(self, db, make_user, gateway):
        user = await make_user()
        await create_stars_checkout(db, gateway, user.id, "starter")

        first = await _paid(db, "order_0001", payment_id="pay_1", signature="sig", now=NOW)
        second = await _paid(db, "order_0001", payment_id="pay_1", signature="sig", now=NOW)

        assert first.status == second.status == "paid"
        assert first.gateway_payment_id == "pay_1"
        assert first.paid_at == NOW

        entries = await list_ledger(db, user.id)
        assert [(e.type, e.stars) for e in entries] == [("purchase", 150)]
        assert entries[0].reference == first.reference
        assert (await get_user(db, user.id)).stars_balance == 150
        assert await audit_balance(db, user.id)

    @pytest.mark.asyncio
    async def test_missing_transaction(self, db):
        with pytest.raises(NotFound):
            await apply_payment_effects(db, 999)
        with pytest.raises(NotFound):
            await get_transaction_by_order(db, "order_missing")


class TestMembership:
    @pytest.mark.asyncio
    async def test_new_membership(self, db, make_user, gateway):
        user = await make_user()
        await create_membership_checkout(db, gateway, user.id, "star-pass", "monthly")

        await _paid(db, "order_0001", now=NOW)

        user = await get_user(db, user.id)
        assert user.membership_tier == "star-pass"
        assert user.membership_expires_at == datetime(2026, 4, 4, 12, 0, tzinfo=timezone.utc)
        assert user.hide_ads is True
        assert (user.ai_quota_limit, user.ai_quota_used) == (60, 0)
        assert user.ai_quota_renews_at == datetime(2026, 4, 4, 12, 0, tzinfo=timezone.utc)
        assert user.stars_balance == 300

    @pytest.mark.asyncio
    async def test_renewal_stacks_on_remaining_time(self, db, make_user, gateway):
        current_expiry = NOW + timedelta(days=10)
        user = await make_user(membership_tier="star-pass", membership_expires_at=current_expiry)
        await create_membership_checkout(db, gateway, user.id, "star-pass", "monthly")

        await _paid(db, "order_0001", now=NOW)
        await _paid(db, "order_0001", now=NOW)

        user = await get_user(db, user.id)
        assert user.membership_expires_at == datetime(2026, 4, 14, 12, 0, tzinfo=timezone.utc)
        membership_entries = (await db.execute(
            select(StarLedger).where(StarLedger.user_id == user.id, StarLedger.type == "membership")
        )).scalars().all()
        assert [e.stars for e in membership_entries] == [300]

    @pytest.mark.asyncio
    async def test_lapsed_membership_restarts_from_now(self, db, make_user, gateway):
        user = await make_user(membership_tier="star-pass", membership_expires_at=NOW - timedelta(days=3))
        await create_membership_checkout(db, gateway, user.id, "star-pass", "monthly")

        await _paid(db, "order_0001", now=NOW)

        assert (await get_user(db, user.id)).membership_expires_at == datetime(2026, 4, 4, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_unlimited_quota_renews_with_membership(self, db, make_user, gateway):
        user = await make_user()
        await create_membership_checkout(db, gateway, user.id, "star-unlimited", "yearly")

        await _paid(db, "order_0001", now=NOW)

        user = await get_user(db, user.id)
        assert user.membership_tier == "star-unlimited"
        assert user.ai_quota_limit == -1
        assert user.membership_expires_at == datetime(2027, 3, 4, 12, 0, tzinfo=timezone.utc)
        assert user.ai_quota_renews_at == user.membership_expires_at
        assert user.stars_balance == 1200


class TestSubscriptionReferral:
    @pytest.mark.asyncio
    async def test_referrer_rewarded_once(self, db, make_user, gateway):
        referrer = await make_user("orion")
        code = await ensure_referral_code(db, referrer)
        buyer = await make_user("nova")
        await create_membership_checkout(db, gateway, buyer.id, "star-pass", "monthly", code.lower())

        await _paid(db, "order_0001", now=NOW)
        await _paid(db, "order_0001", now=NOW)

        records = (await db.execute(
            select(ReferralRecord).where(ReferralRecord.referrer_id == referrer.id)
        )).scalars().all()
        assert [(r.reward_type, r.reward_stars, r.invitee_id) for r in records] == [("subscription", 200, buyer.id)]

    @pytest.mark.asyncio
    async def test_own_code_is_ignored(self, db, make_user, gateway):
        buyer = await make_user()
        code = await ensure_referral_code(db, buyer)
        await create_membership_checkout(db, gateway, buyer.id, "star-pass", "monthly", code)

        await _paid(db, "order_0001", now=NOW)

        records = (await db.execute(select(ReferralRecord))).scalars().all()
        assert records == []

    @pytest.mark.asyncio
    async def test_unknown_code_is_ignored(self, db, make_user, gateway):
        buyer = await make_user()
        await create_membership_checkout(db, gateway, buyer.id, "star-pass", "monthly", "NOPE0000")

        transaction = await _paid(db, "order_0001", now=NOW)

        assert transaction.status == "paid"
        assert (await db.execute(select(ReferralRecord))).scalars().all() == []


class TestFailure:
    @pytest.mark.asyncio
    async def test_mark_failed_only_from_created(self, db, make_user, gateway):
        user = await make_user()
        await create_stars_checkout(db, gateway, user.id, "starter")

        assert await mark_payment_failed(db, "order_0001", payment_id="pay_x") is True
        assert await mark_payment_failed(db, "order_0001") is False

        transaction = await get_transaction_by_order(db, "order_0001")
        assert transaction.status == "failed"
        assert transaction.gateway_payment_id == "pay_x"

    @pytest.mark.asyncio
    async def test_paid_transaction_never_fails(self, db, make_user, gateway):
        user = await make_user()
        await create_stars_checkout(db, gateway, user.id, "starter")
        await _paid(db, "order_0001", now=NOW)

        assert await mark_payment_failed(db, "order_0001") is False
        assert (await get_transaction_by_order(db, "order_0001")).status == "paid"

    @pytest.mark.asyncio
    async def test_late_capture_after_failure_still_delivers(self, db, make_user, gateway):
        user = await make_user()
        await create_stars_checkout(db, gateway, user.id, "starter")
        await mark_payment_failed(db, "order_0001")

        transaction = await _paid(db, "order_0001", payment_id="pay_2", now=NOW)

        assert transaction.status == "paid"
        assert (await get_user(db, user.id)).stars_balance == 150
