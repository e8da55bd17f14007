"""builder schema: projects, published pages, subscriptions

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op


revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One row per website. The whole document lives in `document`;
    # customer_id and deleted_at are lifted out for plan counting.
    op.execute("""
        CREATE TABLE site_projects (
            id TEXT PRIMARY KEY,
            customer_id TEXT NOT NULL,
            document JSONB NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            deleted_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)
    op.execute("""
        CREATE INDEX idx_site_projects_customer_live
            ON site_projects(customer_id) WHERE deleted_at IS NULL;
    """)

    # Rendered output of the last publish, one row per page
    op.execute("""
        CREATE TABLE published_pages (
            project_id TEXT NOT NULL REFERENCES site_projects(id) ON DELETE CASCADE,
            slug TEXT NOT NULL,
            html TEXT NOT NULL,
            content_hash TEXT NOT NULL,
            published_at TIMESTAMPTZ DEFAULT now(),
            PRIMARY KEY (project_id, slug)
        );
    """)

    # Builder plan per customer; missing rows mean "starter"
    op.execute("""
        CREATE TABLE builder_subscriptions (
            customer_id TEXT PRIMARY KEY,
            plan TEXT NOT NULL DEFAULT 'starter'
                CHECK (plan IN ('starter', 'pro', 'agency')),
            updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS published_pages CASCADE;")
    op.execute("DROP TABLE IF EXISTS builder_subscriptions CASCADE;")
    op.execute("DROP TABLE IF EXISTS site_projects CASCADE;")
