"""initial schema

Revision ID: 5c1f0a7e9b21
Revises:
Create Date: 2026-10-18 09:00:00.000000+00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from notify_service.core.database.types import StringArray

# revision identifiers, used by Alembic.
revision: str = "5c1f0a7e9b21"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def _base_columns(*, tenant: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("id", sa.Uuid(), nullable=False, comment="UUID v7 primary key (time-sortable)"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="Timestamp of record creation",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="Timestamp of last update",
        ),
    ]
    if tenant:
        columns.append(
            sa.Column("tenant_id", sa.String(length=255), nullable=False, comment="Owning tenant identifier"),
        )
    return columns


def upgrade() -> None:
    """Create the notification tables."""
    op.create_table(
        "notifications",
        *_base_columns(),
        sa.Column(
            "recipient_id",
            sa.String(length=255),
            nullable=True,
            comment="Target user id; NULL for tenant-wide broadcasts",
        ),
        sa.Column("asset_id", sa.String(length=255), nullable=True),
        sa.Column("work_order_id", sa.String(length=255), nullable=True),
        sa.Column("inventory_item_id", sa.String(length=255), nullable=True),
        sa.Column("pm_task_id", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "category",
            sa.String(length=50),
            nullable=False,
            comment="Semantic bucket such as assigned, overdue, pm_due",
        ),
        sa.Column(
            "event",
            sa.String(length=100),
            nullable=False,
            comment="Event key matched against subscriptions (defaults to category)",
        ),
        sa.Column("notification_type", sa.String(length=20), nullable=False, comment="info, warning or critical"),
        sa.Column(
            "delivery_state",
            sa.String(length=20),
            nullable=False,
            comment="pending, sent or failed across all channels",
        ),
        sa.Column(
            "context_data",
            JSON_TYPE,
            nullable=True,
            comment="Template substitution context captured at creation",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notifications")),
    )
    op.create_index(op.f("ix_notifications_tenant_id"), "notifications", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_notifications_recipient_id"), "notifications", ["recipient_id"], unique=False)
    op.create_index(op.f("ix_notifications_category"), "notifications", ["category"], unique=False)
    op.create_index(op.f("ix_notifications_delivery_state"), "notifications", ["delivery_state"], unique=False)

    op.create_table(
        "notification_subscriptions",
        *_base_columns(),
        sa.Column(
            "user_id",
            sa.String(length=255),
            nullable=True,
            comment="Subscribed user (exclusive with group)",
        ),
        sa.Column(
            "group",
            sa.String(length=255),
            nullable=True,
            comment="Subscribed group, resolved to members through the recipient directory",
        ),
        sa.Column(
            "events",
            StringArray(),
            nullable=False,
            comment="Event names; empty, '*' or 'all' match every event",
        ),
        sa.Column("channels", StringArray(), nullable=False, comment="Ordered delivery channels"),
        sa.Column(
            "channel_targets",
            JSON_TYPE,
            nullable=True,
            comment="Explicit per-channel addresses (webhook URL, push token, phone)",
        ),
        sa.Column("quiet_hours_start", sa.String(length=5), nullable=True),
        sa.Column("quiet_hours_end", sa.String(length=5), nullable=True),
        sa.Column(
            "timezone",
            sa.String(length=64),
            nullable=True,
            comment="IANA timezone for quiet hours and digest boundaries",
        ),
        sa.Column("digest_enabled", sa.Boolean(), nullable=False),
        sa.Column("digest_frequency", sa.String(length=10), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notification_subscriptions")),
    )
    op.create_index(
        op.f("ix_notification_subscriptions_tenant_id"),
        "notification_subscriptions",
        ["tenant_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_notification_subscriptions_user_id"),
        "notification_subscriptions",
        ["user_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_notification_subscriptions_group"),
        "notification_subscriptions",
        ["group"],
        unique=False,
    )

    op.create_table(
        "notification_templates",
        *_base_columns(),
        sa.Column("event", sa.String(length=100), nullable=False),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notification_templates")),
        sa.UniqueConstraint("tenant_id", "event", "channel", name="uq_notification_templates_event_channel"),
    )
    op.create_index(
        op.f("ix_notification_templates_tenant_id"),
        "notification_templates",
        ["tenant_id"],
        unique=False,
    )

    op.create_table(
        "notification_digest_queue",
        *_base_columns(),
        sa.Column("subscription_id", sa.Uuid(), nullable=False),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("deliver_at", sa.DateTime(timezone=True), nullable=False, comment="When the batch becomes due"),
        sa.Column("attempts", sa.Integer(), nullable=False, comment="Failed flush attempts so far"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("claim_token", sa.String(length=36), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notification_digest_queue")),
        sa.UniqueConstraint(
            "subscription_id",
            "channel",
            name="uq_notification_digest_queue_subscription_channel",
        ),
    )
    op.create_index(
        op.f("ix_notification_digest_queue_tenant_id"),
        "notification_digest_queue",
        ["tenant_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_notification_digest_queue_subscription_id"),
        "notification_digest_queue",
        ["subscription_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_notification_digest_queue_deliver_at"),
        "notification_digest_queue",
        ["deliver_at"],
        unique=False,
    )

    op.create_table(
        "notification_digest_items",
        *_base_columns(tenant=False),
        sa.Column("entry_id", sa.Uuid(), nullable=False),
        sa.Column("notification_id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(
            ["entry_id"],
            ["notification_digest_queue.id"],
            name=op.f("fk_notification_digest_items_entry_id_notification_digest_queue"),
        ),
        sa.ForeignKeyConstraint(
            ["notification_id"],
            ["notifications.id"],
            name=op.f("fk_notification_digest_items_notification_id_notifications"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notification_digest_items")),
        sa.UniqueConstraint(
            "entry_id",
            "notification_id",
            name="uq_notification_digest_items_entry_notification",
        ),
    )
    op.create_index(
        op.f("ix_notification_digest_items_entry_id"),
        "notification_digest_items",
        ["entry_id"],
        unique=False,
    )

    op.create_table(
        "notification_delivery_logs",
        *_base_columns(),
        sa.Column("notification_id", sa.Uuid(), nullable=False),
        sa.Column(
            "subscription_id",
            sa.Uuid(),
            nullable=True,
            comment="NULL for fallback deliveries to unsubscribed recipients",
        ),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("event", sa.String(length=100), nullable=False),
        sa.Column("target", sa.String(length=1024), nullable=True, comment="Resolved address, token or URL"),
        sa.Column(
            "next_attempt_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="When a failed attempt becomes retryable; NULL when terminal",
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_category", sa.String(length=50), nullable=True),
        sa.Column("response_time_ms", sa.Integer(), nullable=True),
        sa.Column("metadata", JSON_TYPE, nullable=True),
        sa.Column("claim_token", sa.String(length=36), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["notification_id"],
            ["notifications.id"],
            name=op.f("fk_notification_delivery_logs_notification_id_notifications"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notification_delivery_logs")),
    )
    op.create_index(
        op.f("ix_notification_delivery_logs_tenant_id"),
        "notification_delivery_logs",
        ["tenant_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_notification_delivery_logs_notification_id"),
        "notification_delivery_logs",
        ["notification_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_notification_delivery_logs_subscription_id"),
        "notification_delivery_logs",
        ["subscription_id"],
        unique=False,
    )
    op.create_index(
        "ix_notification_delivery_logs_retry",
        "notification_delivery_logs",
        ["status", "next_attempt_at"],
        unique=False,
    )
    op.create_index(
        "ix_notification_delivery_logs_pair",
        "notification_delivery_logs",
        ["notification_id", "subscription_id", "channel", "attempt"],
        unique=False,
    )


def downgrade() -> None:
    """Drop the notification tables."""
    op.drop_table("notification_delivery_logs")
    op.drop_table("notification_digest_items")
    op.drop_table("notification_digest_queue")
    op.drop_table("notification_templates")
    op.drop_table("notification_subscriptions")
    op.drop_table("notifications")
