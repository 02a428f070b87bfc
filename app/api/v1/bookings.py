"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_booking_service, get_current_user, get_db
from app.core.permissions import require_customer, require_provider
from app.models.booking import Booking, BookingStatusEvent
from app.models.user import User
from app.schemas.booking import (
    BookingCancelRequest,
    BookingConfirmRequest,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusEventResponse,
)
from app.services.booking_service import BookingService

router = APIRouter()

CurrentUser = Annotated[User, Depends(get_current_user)]
Db = Annotated[AsyncSession, Depends(get_db)]
Engine = Annotated[BookingService, Depends(get_booking_service)]


# ================ CUSTOMER ROUTES ================


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: Annotated[User, Depends(require_customer)],
    db: Db,
    engine: Engine,
) -> Booking:
    """Create a new booking (customer only)."""
    return await engine.create_booking(db, current_user, booking_data)


@router.get("/my-bookings", response_model=BookingListResponse)
async def get_my_bookings(
    current_user: Annotated[User, Depends(require_customer)],
    db: Db,
    engine: Engine,
    status_filter: str | None = Query(default=None, alias="status"),
) -> BookingListResponse:
    """Get bookings for the current customer."""
    bookings = await engine.list_customer_bookings(db, current_user, status_filter)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=len(bookings),
    )


# ================ PROVIDER ROUTES ================


@router.get("/provider-bookings", response_model=BookingListResponse)
async def get_provider_bookings(
    current_user: Annotated[User, Depends(require_provider)],
    db: Db,
    engine: Engine,
    status_filter: str | None = Query(default=None, alias="status"),
) -> BookingListResponse:
    """Get bookings for the current provider."""
    bookings = await engine.list_provider_bookings(db, current_user, status_filter)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=len(bookings),
    )


@router.put("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: UUID,
    current_user: CurrentUser,
    db: Db,
    engine: Engine,
    request: BookingConfirmRequest | None = None,
) -> Booking:
    """Confirm a pending booking (provider on the booking only)."""
    notes = request.provider_notes if request else None
    return await engine.confirm_booking(db, current_user, booking_id, notes)


@router.put("/{booking_id}/start", response_model=BookingResponse)
async def start_booking(
    booking_id: UUID,
    current_user: CurrentUser,
    db: Db,
    engine: Engine,
) -> Booking:
    """Mark a confirmed booking as in progress (provider on the booking only)."""
    return await engine.start_booking(db, current_user, booking_id)


@router.put("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: UUID,
    current_user: CurrentUser,
    db: Db,
    engine: Engine,
) -> Booking:
    """Mark a confirmed or in-progress booking as completed (provider on the booking only)."""
    return await engine.complete_booking(db, current_user, booking_id)


# ================ SHARED ROUTES ================


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUser,
    db: Db,
    engine: Engine,
) -> Booking:
    """Get a booking by ID."""
    return await engine.get_booking(db, current_user, booking_id)


@router.get("/{booking_id}/history", response_model=list[BookingStatusEventResponse])
async def get_booking_history(
    booking_id: UUID,
    current_user: CurrentUser,
    db: Db,
    engine: Engine,
) -> list[BookingStatusEvent]:
    """Get the status history of a booking."""
    return await engine.get_booking_history(db, current_user, booking_id)


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    request: BookingCancelRequest,
    current_user: CurrentUser,
    db: Db,
    engine: Engine,
) -> Booking:
    """Cancel a booking that has not finished."""
    return await engine.cancel_booking(db, current_user, booking_id, request.reason)
