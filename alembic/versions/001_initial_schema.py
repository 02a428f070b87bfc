"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all tables for the booking lifecycle service:
- Users (read-only mirror of the auth service)
- Provider directory and service catalog
- Bookings, status history and the booking number sequence
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

    # ==================== USERS ====================
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("phone", sa.String(30)),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== PROVIDER DIRECTORY ====================
    op.create_table(
        "service_providers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), unique=True, nullable=False, index=True),
        sa.Column("business_name", sa.String(200)),
        sa.Column("bio", sa.Text),
        sa.Column("phone", sa.String(30)),
        sa.Column("is_approved", sa.Boolean, server_default=sa.false(), index=True),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), index=True),
        sa.Column("availability", sa.JSON),
        sa.Column("working_hours_start", sa.String(5), server_default="09:00"),
        sa.Column("working_hours_end", sa.String(5), server_default="18:00"),
        sa.Column("rating", sa.Numeric(3, 2), server_default="0"),
        sa.Column("total_reviews", sa.Integer, server_default="0"),
        sa.Column("total_bookings", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completed_bookings", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== SERVICE CATALOG ====================
    op.create_table(
        "services",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("service_providers.id"), nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_type", sa.String(20), server_default="fixed"),
        sa.Column("duration_minutes", sa.Integer),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== BOOKINGS ====================
    # Booking number sequence (the booking_number_sequence table is only
    # used on databases without native sequences)
    op.execute(sa.schema.CreateSequence(sa.Sequence("booking_number_seq")))

    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_number", sa.String(32), unique=True, nullable=False, index=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("service_providers.id"), nullable=False),
        sa.Column("service_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("scheduled_date", sa.Date, nullable=False, index=True),
        sa.Column("scheduled_time", sa.String(5), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("customer_name", sa.String(150), nullable=False),
        sa.Column("customer_phone", sa.String(30), nullable=False),
        sa.Column("customer_address", sa.Text, nullable=False),
        sa.Column("service_name", sa.String(200), nullable=False),
        sa.Column("service_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("notes", sa.String(500)),
        sa.Column("provider_notes", sa.String(500)),
        sa.Column("cancellation_reason", sa.String(500)),
        sa.Column("cancelled_by", sa.String(10)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'in-progress', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint(
            "cancelled_by IS NULL OR cancelled_by IN ('customer', 'provider', 'admin')",
            name="ck_bookings_cancelled_by",
        ),
    )
    op.create_index("ix_bookings_customer_status", "bookings", ["customer_id", "status"])
    op.create_index("ix_bookings_provider_status", "bookings", ["provider_id", "status"])

    op.create_table(
        "booking_status_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("from_status", sa.String(20)),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("actor_role", sa.String(10), nullable=False),
        sa.Column("note", sa.String(500)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("booking_status_events")
    op.drop_index("ix_bookings_provider_status", table_name="bookings")
    op.drop_index("ix_bookings_customer_status", table_name="bookings")
    op.drop_table("bookings")
    op.execute(sa.schema.DropSequence(sa.Sequence("booking_number_seq")))
    op.drop_table("services")
    op.drop_table("service_providers")
    op.drop_table("users")
