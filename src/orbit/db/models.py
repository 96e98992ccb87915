"""ORM models for the Orbit engagement economy.

The user row owns the stars balance and the AI quota. Every other entity
references users by id only.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orbit.db.base import Base, BigIntId, JSONType, UTCDateTime, utcnow


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table. Balance and quota fields are written only by the economy services."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("stars_balance >= 0", name="ck_users_stars_balance_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    # --- Wallet ---
    stars_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # --- Membership ---
    membership_tier: Mapped[str] = mapped_column(String(16), nullable=False, default="free", server_default="free")
    membership_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    hide_ads: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")

    # --- AI quota (limit -1 = unlimited) ---
    ai_quota_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=5, server_default="5")
    ai_quota_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ai_quota_renews_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # --- Referrals ---
    referral_code: Mapped[str | None] = mapped_column(String(16), unique=True, nullable=True)
    referral_invited_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    referral_rewards_claimed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


# ---------------------------------------------------------------------------
# Posts (only the fields the boost economy touches)
# ---------------------------------------------------------------------------


class Post(Base):
    """Maps to the 'posts' table."""

    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    boost_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    boosted_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Wallet ledger
# ---------------------------------------------------------------------------


class StarLedger(Base):
    """Append-only record of every balance change. Rows are never updated or deleted."""

    __tablename__ = "star_ledger"
    __table_args__ = (Index("idx_star_ledger_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    stars: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    ledger_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Missions & streaks
# ---------------------------------------------------------------------------


class MissionTemplate(Base):
    """Mission catalog entry, seeded by key."""

    __tablename__ = "mission_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    activity_type: Mapped[str] = mapped_column(String(16), nullable=False)
    target: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_stars: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    streak_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class UserMission(Base):
    """One user's progress on one template within one day.

    ``target`` and ``reward_stars`` are copied from the template at creation
    and are authoritative afterwards.
    """

    __tablename__ = "user_missions"
    __table_args__ = (
        UniqueConstraint("user_id", "template_id", "period_key", name="uq_user_missions_user_template_period"),
        Index("idx_user_missions_user_period", "user_id", "period_key"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    template_id: Mapped[int] = mapped_column(ForeignKey("mission_templates.id"), nullable=False)
    period_key: Mapped[str] = mapped_column(String(10), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    target: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    reward_stars: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    template: Mapped[MissionTemplate] = relationship("MissionTemplate", lazy="joined", innerjoin=True)


class UserStreak(Base):
    """Consecutive-day counter per (user, streak type)."""

    __tablename__ = "user_streaks"
    __table_args__ = (UniqueConstraint("user_id", "type", name="uq_user_streaks_user_type"),)

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    streak_type: Mapped[str] = mapped_column("type", String(32), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_completed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


class LeaderboardEntry(Base):
    """Weekly accumulated value per (category, user). Incremented, never overwritten."""

    __tablename__ = "leaderboard_entries"
    __table_args__ = (
        UniqueConstraint("category", "user_id", "period_key", name="uq_leaderboard_category_user_period"),
        Index("idx_leaderboard_category_period_value", "category", "period_key", "value"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    period_key: Mapped[str] = mapped_column(String(10), nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------


class ReferralRecord(Base):
    """One claimable referral reward. ``claimed`` flips exactly once."""

    __tablename__ = "referral_records"
    __table_args__ = (Index("idx_referral_records_referrer_claimed", "referrer_id", "claimed"),)

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    referrer_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    invitee_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    invitee_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    reward_stars: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_type: Mapped[str] = mapped_column(String(16), nullable=False)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    claimed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------


class PaymentTransaction(Base):
    """Gateway payment. ``created -> paid`` happens at most once and triggers payment effects."""

    __tablename__ = "payment_transactions"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    reference: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    amount_minor_units: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR", server_default="INR")
    stars_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    membership_tier: Mapped[str | None] = mapped_column(String(16), nullable=True)
    membership_period_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gateway_order_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    gateway_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    gateway_signature: Mapped[str | None] = mapped_column(String(256), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="created", server_default="created")
    transaction_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    """Persisted user notifications."""

    __tablename__ = "notifications"
    __table_args__ = (Index("idx_notifications_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    notification_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
