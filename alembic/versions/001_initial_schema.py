"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all tables for the booking lifecycle and loyalty ledger:
- Bookings, room lines and status history
- Loyalty accounts and the points ledger
- Loyalty reconciliation runs
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_number", sa.String(20), unique=True, nullable=False, index=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("hotel_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("check_in", sa.Date, nullable=False, index=True),
        sa.Column("check_out", sa.Date, nullable=False),
        sa.Column("currency", sa.String(3), default="USD"),
        sa.Column("base_price", sa.Integer, nullable=False),
        sa.Column("quoted_price", sa.Integer, nullable=False),
        sa.Column("discount_amount", sa.Integer, nullable=False, default=0),
        sa.Column("total_price", sa.Integer, nullable=False),
        sa.Column("extras_amount", sa.Integer, nullable=False, default=0),
        sa.Column("demand_level", sa.String(20)),
        sa.Column("status", sa.String(20), nullable=False, default="PENDING", index=True),
        sa.Column("loyalty_effect", postgresql.JSONB, nullable=False),
        sa.Column("cancelled_by", sa.String(20)),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("rejected_at", sa.DateTime(timezone=True)),
        sa.Column("checked_in_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("no_show_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "booking_room_lines",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("position", sa.Integer, nullable=False, default=0),
        sa.Column("room_type", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, default=1),
        sa.Column("unit_price", sa.Integer, nullable=False),
    )

    op.create_table(
        "booking_status_changes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("previous_status", sa.String(20)),
        sa.Column("new_status", sa.String(20), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("actor_role", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("booking_id", "sequence", name="uq_status_change_sequence"),
    )

    # ==================== LOYALTY ====================
    op.create_table(
        "loyalty_accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), unique=True, nullable=False, index=True),
        sa.Column("current_points", sa.Integer, nullable=False, default=0),
        sa.Column("lifetime_points", sa.Integer, nullable=False, default=0),
        sa.Column("last_sequence", sa.Integer, nullable=False, default=0),
        sa.Column("tier", sa.String(20), nullable=False, default="BRONZE"),
        sa.Column("points_to_next_tier", sa.Integer, nullable=False, default=0),
        sa.Column("tier_progress_percent", sa.Float, nullable=False, default=0.0),
        sa.Column("tier_updated_at", sa.DateTime(timezone=True)),
        sa.Column("is_active", sa.Boolean, nullable=False, default=True),
        sa.Column("enrolled_at", sa.DateTime(timezone=True)),
        sa.Column("closed_at", sa.DateTime(timezone=True)),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("current_points >= 0", name="ck_loyalty_accounts_balance_non_negative"),
        sa.CheckConstraint("lifetime_points >= 0", name="ck_loyalty_accounts_lifetime_non_negative"),
    )

    op.create_table(
        "loyalty_ledger_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("loyalty_accounts.customer_id"), nullable=False, index=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), index=True),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("kind", sa.String(30), nullable=False, index=True),
        sa.Column("points_amount", sa.Integer, nullable=False),
        sa.Column("previous_balance", sa.Integer, nullable=False),
        sa.Column("new_balance", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, default="COMPLETED"),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("actor_role", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text),
        sa.Column("expires_at", sa.DateTime(timezone=True), index=True),
        sa.Column("parent_entry_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("loyalty_ledger_entries.id")),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("customer_id", "sequence", name="uq_ledger_customer_sequence"),
        sa.CheckConstraint("new_balance = previous_balance + points_amount", name="ck_ledger_balance_arithmetic"),
        sa.CheckConstraint("new_balance >= 0", name="ck_ledger_new_balance_non_negative"),
    )

    # ==================== RECONCILIATION ====================
    op.create_table(
        "loyalty_health_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("checks", postgresql.JSONB, nullable=False),
        sa.Column("counts", postgresql.JSONB, nullable=False),
        sa.Column("trigger", sa.String(30), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_ms", sa.Integer, nullable=False),
        sa.Column("error_message", sa.Text),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("loyalty_health_runs")
    op.drop_table("loyalty_ledger_entries")
    op.drop_table("loyalty_accounts")
    op.drop_table("booking_status_changes")
    op.drop_table("booking_room_lines")
    op.drop_table("bookings")
