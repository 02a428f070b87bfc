"""Pydantic schemas for API validation."""

from app.schemas.booking import (
    BookingCancelRequest,
    BookingConfirmRequest,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusEventResponse,
)

__all__ = [
    "BookingCancelRequest",
    "BookingConfirmRequest",
    "BookingCreate",
    "BookingListResponse",
    "BookingResponse",
    "BookingStatusEventResponse",
]
