"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.validators import validate_time_of_day


class BookingCreate(BaseModel):
    """Schema for creating a booking."""

    service_id: UUID
    scheduled_date: date
    scheduled_time: str = Field(..., examples=["14:30"])
    customer_name: str = Field(..., max_length=150)
    customer_phone: str = Field(..., max_length=30)
    customer_address: str = Field(..., max_length=500)
    notes: str | None = Field(None, max_length=500)

    @field_validator("scheduled_time")
    @classmethod
    def validate_scheduled_time(cls, v: str) -> str:
        if not validate_time_of_day(v):
            raise ValueError("scheduled_time must be HH:MM (24-hour)")
        return v


class BookingConfirmRequest(BaseModel):
    """Schema for confirming a booking."""

    provider_notes: str | None = Field(None, max_length=500)


class BookingCancelRequest(BaseModel):
    """Schema for cancelling a booking.

    There is deliberately no ``cancelled_by`` field; it comes from the caller.
    """

    reason: str = Field(..., max_length=500)


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_number: str
    customer_id: UUID
    provider_id: UUID
    service_id: UUID

    # Schedule
    scheduled_date: date
    scheduled_time: str

    # Status
    status: str

    # Snapshots
    customer_name: str
    customer_phone: str
    customer_address: str
    service_name: str
    service_price: Decimal

    # Annotations
    notes: str | None
    provider_notes: str | None
    cancellation_reason: str | None
    cancelled_by: str | None

    # Timestamps
    created_at: datetime
    confirmed_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    updated_at: datetime


class BookingStatusEventResponse(BaseModel):
    """One entry of a booking's status history."""

    model_config = ConfigDict(from_attributes=True)

    from_status: str | None
    to_status: str
    actor_id: UUID
    actor_role: str
    note: str | None
    created_at: datetime


class BookingListResponse(BaseModel):
    """Schema for a paginated booking list."""

    bookings: list[BookingResponse]
    total: int
    page: int = 1
    pages: int = 1
    limit: int | None = None
