"""Admin panel endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_booking_service, get_db
from app.core.permissions import require_admin
from app.models.user import User
from app.schemas.booking import BookingListResponse, BookingResponse
from app.services.booking_service import BookingService

router = APIRouter()


# ============ BOOKINGS ============


@router.get("/bookings", response_model=BookingListResponse)
async def list_all_bookings(
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[BookingService, Depends(get_booking_service)],
    status_filter: str | None = Query(default=None, alias="status"),
    customer_id: UUID | None = None,
    provider_id: UUID | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> BookingListResponse:
    """List all bookings with optional filters."""
    result = await engine.list_all_bookings(
        db,
        admin,
        status=status_filter,
        customer_id=customer_id,
        provider_id=provider_id,
        page=page,
        limit=limit,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in result["bookings"]],
        total=result["total"],
        page=result["page"],
        pages=result["pages"],
        limit=result["limit"],
    )
