"""builder credits: accounts, holds, transactions

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 15:00:00.000000
"""
from typing import Sequence, Union

from alembic import op


revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One row per customer, opened on first use
    op.execute("""
        CREATE TABLE credit_accounts (
            customer_id TEXT PRIMARY KEY,
            balance_cents INTEGER NOT NULL DEFAULT 0,
            total_purchased_cents INTEGER NOT NULL DEFAULT 0,
            total_used_cents INTEGER NOT NULL DEFAULT 0,
            auto_topup_enabled BOOLEAN NOT NULL DEFAULT false,
            auto_topup_threshold_cents INTEGER NOT NULL DEFAULT 100,
            auto_topup_amount_cents INTEGER NOT NULL DEFAULT 500,
            spending_limit_cents INTEGER,
            spending_limit_period TEXT NOT NULL DEFAULT 'monthly'
                CHECK (spending_limit_period IN ('daily', 'monthly')),
            period_usage_cents INTEGER NOT NULL DEFAULT 0,
            period_reset_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    # Estimated cost held for an AI call in flight
    op.execute("""
        CREATE TABLE credit_holds (
            id TEXT PRIMARY KEY,
            customer_id TEXT NOT NULL REFERENCES credit_accounts(customer_id) ON DELETE CASCADE,
            amount_cents INTEGER NOT NULL CHECK (amount_cents >= 0),
            created_at TIMESTAMPTZ DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX idx_credit_holds_customer ON credit_holds(customer_id);")

    op.execute("""
        CREATE TABLE credit_transactions (
            id BIGSERIAL PRIMARY KEY,
            customer_id TEXT NOT NULL REFERENCES credit_accounts(customer_id) ON DELETE CASCADE,
            type TEXT NOT NULL
                CHECK (type IN ('starter', 'purchase', 'ai_usage', 'auto_topup')),
            amount_cents INTEGER NOT NULL,
            balance_after_cents INTEGER NOT NULL,
            description TEXT NOT NULL,
            reservation_id TEXT,
            created_at TIMESTAMPTZ DEFAULT now()
        );
    """)
    op.execute("""
        CREATE INDEX idx_credit_transactions_customer
            ON credit_transactions(customer_id, created_at DESC);
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS credit_transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS credit_holds CASCADE;")
    op.execute("DROP TABLE IF EXISTS credit_accounts CASCADE;")
