"""create restaurant subscriptions and subscription events tables

Revision ID: 5b9d2f0c3e51
Revises: 3a7c1e9b2d40
Create Date: 2026-10-01 09:10:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "5b9d2f0c3e51"
down_revision = "3a7c1e9b2d40"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "restaurant_subscriptions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("restaurant_id", sa.String(length=36), nullable=False),
        sa.Column("plan", sa.String(length=10), nullable=False, server_default="PRO"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="EXPIRED"),
        sa.Column("trial_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("grace_end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_restaurant_subscriptions_restaurant_id"),
        "restaurant_subscriptions",
        ["restaurant_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_restaurant_subscriptions_status"),
        "restaurant_subscriptions",
        ["status"],
        unique=False,
    )

    op.create_table(
        "restaurant_subscription_events",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("subscription_id", sa.String(length=36), nullable=False),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["subscription_id"], ["restaurant_subscriptions.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_restaurant_subscription_events_subscription_id"),
        "restaurant_subscription_events",
        ["subscription_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_restaurant_subscription_events_event_type"),
        "restaurant_subscription_events",
        ["event_type"],
        unique=False,
    )
    op.create_index(
        op.f("ix_restaurant_subscription_events_created_at"),
        "restaurant_subscription_events",
        ["created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(
        op.f("ix_restaurant_subscription_events_created_at"),
        table_name="restaurant_subscription_events",
    )
    op.drop_index(
        op.f("ix_restaurant_subscription_events_event_type"),
        table_name="restaurant_subscription_events",
    )
    op.drop_index(
        op.f("ix_restaurant_subscription_events_subscription_id"),
        table_name="restaurant_subscription_events",
    )
    op.drop_table("restaurant_subscription_events")
    op.drop_index(
        op.f("ix_restaurant_subscriptions_status"), table_name="restaurant_subscriptions"
    )
    op.drop_index(
        op.f("ix_restaurant_subscriptions_restaurant_id"), table_name="restaurant_subscriptions"
    )
    op.drop_table("restaurant_subscriptions")
