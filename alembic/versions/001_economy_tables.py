"""Engagement economy tables.

Creates users, posts, star_ledger, mission_templates, user_missions,
user_streaks, leaderboard_entries, referral_records, payment_transactions
and notifications.

Revision ID: 001_economy_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_economy_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users (wallet, membership and AI quota live on the row) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            username VARCHAR(32) UNIQUE NOT NULL,
            display_name VARCHAR(64),
            email VARCHAR(320) UNIQUE,
            is_banned BOOLEAN DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            stars_balance INTEGER NOT NULL DEFAULT 0,
            membership_tier VARCHAR(16) NOT NULL DEFAULT 'free',
            membership_expires_at TIMESTAMPTZ,
            hide_ads BOOLEAN DEFAULT false,
            ai_quota_limit INTEGER NOT NULL DEFAULT 5,
            ai_quota_used INTEGER NOT NULL DEFAULT 0,
            ai_quota_renews_at TIMESTAMPTZ,
            referral_code VARCHAR(16) UNIQUE,
            referral_invited_count INTEGER NOT NULL DEFAULT 0,
            referral_rewards_claimed INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT ck_users_stars_balance_non_negative CHECK (stars_balance >= 0)
        )
    """)

    # --- Posts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS posts (
            id BIGSERIAL PRIMARY KEY,
            author_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title VARCHAR(300) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            boost_score INTEGER NOT NULL DEFAULT 0,
            boosted_until TIMESTAMPTZ
        )
    """)

    # --- Star Ledger (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS star_ledger (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            stars INTEGER NOT NULL,
            balance_after INTEGER NOT NULL,
            reference VARCHAR(128),
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_star_ledger_user_created
        ON star_ledger(user_id, created_at)
    """)

    # --- Mission Templates ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS mission_templates (
            id SERIAL PRIMARY KEY,
            key VARCHAR(64) UNIQUE NOT NULL,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            activity_type VARCHAR(16) NOT NULL,
            target INTEGER NOT NULL,
            reward_stars INTEGER NOT NULL,
            active BOOLEAN NOT NULL DEFAULT true,
            streak_type VARCHAR(32),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- User Missions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_missions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            template_id INTEGER NOT NULL REFERENCES mission_templates(id),
            period_key VARCHAR(10) NOT NULL,
            progress INTEGER NOT NULL DEFAULT 0,
            target INTEGER NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            reward_stars INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_missions_user_template_period UNIQUE (user_id, template_id, period_key)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_missions_user_period
        ON user_missions(user_id, period_key)
    """)

    # --- User Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_streaks (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            count INTEGER NOT NULL DEFAULT 0,
            last_completed_date DATE,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_streaks_user_type UNIQUE (user_id, type)
        )
    """)

    # --- Leaderboard Entries ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_entries (
            id BIGSERIAL PRIMARY KEY,
            category VARCHAR(16) NOT NULL,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            period_key VARCHAR(10) NOT NULL,
            value INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_leaderboard_category_user_period UNIQUE (category, user_id, period_key)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_leaderboard_category_period_value
        ON leaderboard_entries(category, period_key, value)
    """)

    # --- Referral Records ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS referral_records (
            id BIGSERIAL PRIMARY KEY,
            referrer_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            invitee_id BIGINT REFERENCES users(id) ON DELETE SET NULL,
            invitee_email VARCHAR(320),
            reward_stars INTEGER NOT NULL,
            reward_type VARCHAR(16) NOT NULL,
            claimed BOOLEAN NOT NULL DEFAULT false,
            claimed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_referral_records_referrer_claimed
        ON referral_records(referrer_id, claimed)
    """)

    # --- Payment Transactions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS payment_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            kind VARCHAR(32) NOT NULL,
            reference VARCHAR(64) UNIQUE NOT NULL,
            amount_minor_units INTEGER NOT NULL,
            currency VARCHAR(3) NOT NULL DEFAULT 'INR',
            stars_awarded INTEGER NOT NULL DEFAULT 0,
            membership_tier VARCHAR(16),
            membership_period_months INTEGER,
            gateway_order_id VARCHAR(64) UNIQUE NOT NULL,
            gateway_payment_id VARCHAR(64),
            gateway_signature VARCHAR(256),
            status VARCHAR(16) NOT NULL DEFAULT 'created',
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            paid_at TIMESTAMPTZ
        )
    """)

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            title VARCHAR(256) NOT NULL,
            body TEXT,
            read BOOLEAN NOT NULL DEFAULT false,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user_created
        ON notifications(user_id, created_at)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS payment_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS referral_records CASCADE")
    op.execute("DROP TABLE IF EXISTS leaderboard_entries CASCADE")
    op.execute("DROP TABLE IF EXISTS user_streaks CASCADE")
    op.execute("DROP TABLE IF EXISTS user_missions CASCADE")
    op.execute("DROP TABLE IF EXISTS mission_templates CASCADE")
    op.execute("DROP TABLE IF EXISTS star_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS posts CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
