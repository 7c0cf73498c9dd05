"""Initial guest messaging schema

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-10-18 09:12:31.204118

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]
from guest_messaging.config import SCHEMA

# revision identifiers, used by Alembic.
revision = "3f2a9c1d7b40"
down_revision = None
branch_labels = None
depends_on = None

LIVE_SCHEDULED_PREDICATE = "status IN ('pending', 'processing')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=True),
        sa.Column("check_in_time", sa.Time(), nullable=True),
        sa.Column("check_out_time", sa.Time(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )

    op.create_table(
        "seasons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.properties.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("multiplier", sa.Float(), nullable=False),
        sa.Column("recurring", sa.Boolean(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        schema=SCHEMA,
    )
    op.create_index("ix_seasons_property_id", "seasons", ["property_id"], schema=SCHEMA)

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_booking_id", sa.String(64), nullable=True, unique=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("guest_name", sa.String(255), nullable=True),
        sa.Column("guest_first_name", sa.String(255), nullable=True),
        sa.Column("guest_last_name", sa.String(255), nullable=True),
        sa.Column("guest_email", sa.String(255), nullable=True),
        sa.Column("guest_phone", sa.String(64), nullable=True),
        sa.Column("booking_source", sa.String(64), nullable=True),
        sa.Column("num_guests", sa.Integer(), nullable=False),
        sa.Column("check_in_date", sa.Date(), nullable=False),
        sa.Column("check_out_date", sa.Date(), nullable=False),
        sa.Column("check_in_time", sa.Time(), nullable=True),
        sa.Column("check_out_time", sa.Time(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column(
            "group_master_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.reservations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_group_master", sa.Boolean(), nullable=False),
        sa.Column("automation_enabled", sa.Boolean(), nullable=False),
        *_timestamps(),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_reservations_check_in_date", "reservations", ["check_in_date"], schema=SCHEMA
    )

    op.create_table(
        "message_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("language", sa.String(8), nullable=False),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )

    op.create_table(
        "automation_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.properties.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.message_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("timing_type", sa.String(40), nullable=False),
        sa.Column("timing_params", postgresql.JSONB(), nullable=False),
        sa.Column("backfill_policy", sa.String(20), nullable=False),
        sa.Column("filters", postgresql.JSONB(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_automation_rules_property_id", "automation_rules", ["property_id"], schema=SCHEMA
    )

    op.create_table(
        "scheduled_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "reservation_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.reservations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "rule_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.automation_rules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.message_templates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("fire_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column("cancellation_reason", sa.String(255), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("claim_token", sa.String(64), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("thread_id", sa.Integer(), nullable=True),
        sa.Column("message_id", sa.Integer(), nullable=True),
        *_timestamps(),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_scheduled_messages_reservation_id",
        "scheduled_messages",
        ["reservation_id"],
        schema=SCHEMA,
    )
    op.create_index(
        "ix_scheduled_messages_status_fire_at",
        "scheduled_messages",
        ["status", "fire_at"],
        schema=SCHEMA,
    )
    op.create_index(
        "uq_scheduled_messages_live_pair",
        "scheduled_messages",
        ["reservation_id", "rule_id"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text(LIVE_SCHEDULED_PREDICATE),
    )

    op.create_table(
        "threads",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "reservation_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.reservations.id", ondelete="CASCADE"),
            nullable=True,
            unique=True,
        ),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_message_preview", sa.String(200), nullable=True),
        *_timestamps(),
        schema=SCHEMA,
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "thread_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.threads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "parent_message_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.messages.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("origin_role", sa.String(16), nullable=False),
        sa.Column("direction", sa.String(16), nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("image_urls", postgresql.JSONB(), nullable=True),
        sa.Column("is_unsent", sa.Boolean(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_messages_thread_id", "messages", ["thread_id"], schema=SCHEMA)

    op.create_table(
        "message_deliveries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "message_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.messages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("provider_message_id", sa.String(255), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("queued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.UniqueConstraint("message_id", "channel", "attempt", name="uq_delivery_attempt"),
        sa.UniqueConstraint("channel", "provider_message_id", name="uq_delivery_provider_id"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_message_deliveries_message_id", "message_deliveries", ["message_id"], schema=SCHEMA
    )

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.String(128), nullable=False, unique=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column(
            "processed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        "webhook_events",
        "message_deliveries",
        "messages",
        "threads",
        "scheduled_messages",
        "automation_rules",
        "message_templates",
        "reservations",
        "seasons",
        "properties",
    ):
        op.drop_table(table, schema=SCHEMA)
