"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Sequence,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.user import utcnow


class Booking(Base):
    """A scheduled engagement between one customer and one provider."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_customer_status", "customer_id", "status"),
        Index("ix_bookings_provider_status", "provider_id", "status"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in-progress', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "cancelled_by IS NULL OR cancelled_by IN ('customer', 'provider', 'admin')",
            name="ck_bookings_cancelled_by",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_number: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )  # BK<epoch millis><4-digit seq>

    # References (immutable)
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("service_providers.id"), nullable=False
    )
    service_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("services.id"), nullable=False)

    # Schedule (immutable)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    scheduled_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, confirmed, in-progress, completed, cancelled
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Snapshots taken at creation
    customer_name: Mapped[str] = mapped_column(String(150), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    customer_address: Mapped[str] = mapped_column(Text, nullable=False)
    service_name: Mapped[str] = mapped_column(String(200), nullable=False)
    service_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Annotations
    notes: Mapped[str | None] = mapped_column(String(500))
    provider_notes: Mapped[str | None] = mapped_column(String(500))
    cancellation_reason: Mapped[str | None] = mapped_column(String(500))
    cancelled_by: Mapped[str | None] = mapped_column(String(10))  # customer, provider, admin

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    status_events: Mapped[list["BookingStatusEvent"]] = relationship(
        "BookingStatusEvent",
        back_populates="booking",
        order_by="BookingStatusEvent.id",
    )

    @property
    def channel_ref(self) -> str:
        """Chat channel shared by the customer and the provider."""
        return f"booking-{self.id}"


class BookingStatusEvent(Base):
    """Append-only status history for a booking."""

    __tablename__ = "booking_status_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    from_status: Mapped[str | None] = mapped_column(String(20))  # None for creation
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(10), nullable=False)
    note: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="status_events")


# Native sequence behind booking numbers on PostgreSQL.
BOOKING_NUMBER_SEQ = Sequence("booking_number_seq", metadata=Base.metadata)


class BookingNumberSequence(Base):
    """Sequence source for databases without native sequences (SQLite).

    One row is inserted per allocated number; the autoincrement key is the
    sequence value. PostgreSQL uses ``BOOKING_NUMBER_SEQ`` instead.
    """

    __tablename__ = "booking_number_sequence"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    allocated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
