"""Durable booking records and their status history."""

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.booking import Booking, BookingStatusEvent


class BookingStore:
    """Reads and conditional writes for bookings."""

    async def get(self, db: AsyncSession, booking_id: UUID, refresh: bool = False) -> Booking:
        """Get booking by ID or raise NotFoundError."""
        query = select(Booking).where(Booking.id == booking_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await db.execute(query)
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def add(
        self,
        db: AsyncSession,
        booking: Booking,
        actor_id: UUID,
        actor_role: str,
    ) -> Booking:
        """Insert a new booking together with its creation event.

        The booking number must already be set.
        """
        db.add(booking)
        await db.flush()
        db.add(
            BookingStatusEvent(
                booking_id=booking.id,
                from_status=None,
                to_status=booking.status,
                actor_id=actor_id,
                actor_role=actor_role,
            )
        )
        await db.flush()
        return booking

    async def apply_transition(
        self,
        db: AsyncSession,
        booking: Booking,
        allowed_from: Iterable[str],
        target: str,
        values: dict[str, Any],
        actor_id: UUID,
        actor_role: str,
        note: str | None = None,
    ) -> bool:
        """Compare-and-swap the booking status.

        The update only matches when the row still has the version and one of
        the statuses the caller read. Status, version and the transition's own
        fields change in a single statement.

        Returns:
            bool: False if another writer got there first
        """
        from_status = booking.status
        result = await db.execute(
            update(Booking)
            .where(
                Booking.id == booking.id,
                Booking.version == booking.version,
                Booking.status.in_(list(allowed_from)),
            )
            .values(status=target, version=Booking.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        db.add(
            BookingStatusEvent(
                booking_id=booking.id,
                from_status=from_status,
                to_status=target,
                actor_id=actor_id,
                actor_role=actor_role,
                note=note,
            )
        )
        await db.flush()
        return True

    async def history(self, db: AsyncSession, booking_id: UUID) -> list[BookingStatusEvent]:
        """Status events for a booking, oldest first."""
        result = await db.execute(
            select(BookingStatusEvent)
            .where(BookingStatusEvent.booking_id == booking_id)
            .order_by(BookingStatusEvent.id.asc())
        )
        return list(result.scalars().all())

    async def search(
        self,
        db: AsyncSession,
        status: str | None = None,
        customer_id: UUID | None = None,
        provider_id: UUID | None = None,
        offset: int = 0,
        limit: int | None = None,
        order_by_schedule: bool = False,
    ) -> tuple[list[Booking], int]:
        """Filtered booking list plus the total matching count."""
        query = select(Booking)
        if status:
            query = query.where(Booking.status == status)
        if customer_id:
            query = query.where(Booking.customer_id == customer_id)
        if provider_id:
            query = query.where(Booking.provider_id == provider_id)

        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        if order_by_schedule:
            query = query.order_by(Booking.scheduled_date.desc(), Booking.created_at.desc())
        else:
            query = query.order_by(Booking.created_at.desc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all()), total


booking_store = BookingStore()
