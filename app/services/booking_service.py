"""Booking lifecycle engine.

Every operation follows the same order: load the booking, authorize the actor
against it, validate any request text, check the status precondition, apply
the change with a compare-and-swap, commit, then run side effects. Side effects (provider
counters, chat notifications) happen after the commit and can only log on
failure.
"""

import logging
import math
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    AuthorizationError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from app.domain.booking_state import (
    ACTION_SOURCES,
    BookingAction,
    BookingRole,
    BookingStatus,
    assert_booking_transition,
)
from app.models.booking import Booking, BookingStatusEvent
from app.models.user import User
from app.schemas.booking import BookingCreate
from app.services.booking_store import BookingStore, booking_store
from app.services.notification_service import NotificationService, notification_service
from app.services.provider_directory import ProviderDirectory, provider_directory
from app.services.statistics_service import StatisticsService, statistics_service
from app.utils.booking_number import generate_booking_number
from app.utils.validators import clean_text, validate_time_of_day

logger = logging.getLogger(__name__)

PROVIDER_ONLY = frozenset({BookingRole.PROVIDER})
CANCEL_ROLES = frozenset({BookingRole.CUSTOMER, BookingRole.PROVIDER})
READ_ROLES = frozenset({BookingRole.CUSTOMER, BookingRole.PROVIDER, BookingRole.ADMIN})


class BookingService:
    """Creates bookings and moves them through their lifecycle."""

    def __init__(
        self,
        store: BookingStore | None = None,
        directory: ProviderDirectory | None = None,
        statistics: StatisticsService | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self.store = store or booking_store
        self.directory = directory or provider_directory
        self.statistics = statistics or statistics_service
        self.notifier = notifier or notification_service

    # ==================== CREATION ====================

    async def create_booking(
        self,
        db: AsyncSession,
        actor: User,
        booking_data: BookingCreate,
    ) -> Booking:
        """Create a pending booking for one service.

        Raises:
            AuthorizationError: Actor is not a customer
            ValidationError: Required field blank or malformed
            NotFoundError: Service missing or inactive
            ProviderUnavailable: Provider not approved, not active or off duty
        """
        if actor.role != BookingRole.CUSTOMER.value:
            raise AuthorizationError("Only customers can create bookings")

        customer_name = clean_text(booking_data.customer_name)
        customer_phone = clean_text(booking_data.customer_phone)
        customer_address = clean_text(booking_data.customer_address)
        if not customer_name or not customer_phone or not customer_address:
            raise ValidationError("Customer name, phone and address are required")
        if not validate_time_of_day(booking_data.scheduled_time):
            raise ValidationError("scheduled_time must be HH:MM (24-hour)")
        notes = self._bounded(booking_data.notes, "notes")

        service, provider = await self.directory.get_bookable_service(db, booking_data.service_id)
        if settings.enforce_provider_working_hours:
            self.directory.check_working_hours(
                provider, booking_data.scheduled_date, booking_data.scheduled_time
            )

        booking = Booking(
            booking_number=await generate_booking_number(db),
            customer_id=actor.id,
            provider_id=provider.id,
            service_id=service.id,
            scheduled_date=booking_data.scheduled_date,
            scheduled_time=booking_data.scheduled_time,
            status=BookingStatus.PENDING.value,
            version=1,
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_address=customer_address,
            service_name=service.name,
            service_price=service.price,
            notes=notes,
        )
        await self.store.add(db, booking, actor.id, BookingRole.CUSTOMER.value)
        await db.commit()

        logger.info(
            f"Booking {booking.booking_number} created by customer {actor.id} "
            f"for service {service.id}"
        )
        await self.notifier.notify_booking_event(booking, NotificationService.BOOKING_CREATED)
        return booking

    # ==================== READS ====================

    async def get_booking(self, db: AsyncSession, actor: User, booking_id: UUID) -> Booking:
        """Get a booking visible to the actor."""
        booking = await self.store.get(db, booking_id)
        await self._authorize(db, actor, booking, READ_ROLES, "view")
        return booking

    async def get_booking_history(
        self, db: AsyncSession, actor: User, booking_id: UUID
    ) -> list[BookingStatusEvent]:
        """Status history of a booking visible to the actor."""
        booking = await self.get_booking(db, actor, booking_id)
        return await self.store.history(db, booking.id)

    async def list_customer_bookings(
        self, db: AsyncSession, actor: User, status: str | None = None
    ) -> list[Booking]:
        """The actor's own bookings as a customer."""
        bookings, _ = await self.store.search(
            db,
            status=self._status_filter(status),
            customer_id=actor.id,
            order_by_schedule=True,
        )
        return bookings

    async def list_provider_bookings(
        self, db: AsyncSession, actor: User, status: str | None = None
    ) -> list[Booking]:
        """Bookings for the provider record owned by the actor."""
        provider = await self.directory.get_provider_for_user(db, actor.id)
        if not provider:
            raise NotFoundError("Provider profile")
        bookings, _ = await self.store.search(
            db,
            status=self._status_filter(status),
            provider_id=provider.id,
            order_by_schedule=True,
        )
        return bookings

    async def list_all_bookings(
        self,
        db: AsyncSession,
        actor: User,
        status: str | None = None,
        customer_id: UUID | None = None,
        provider_id: UUID | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        """Admin listing across all bookings, paginated."""
        if actor.role != BookingRole.ADMIN.value:
            raise AuthorizationError("Admin access required")
        if page < 1:
            raise ValidationError("page must be at least 1")
        if not 1 <= limit <= settings.admin_page_size_max:
            raise ValidationError(f"limit must be between 1 and {settings.admin_page_size_max}")

        bookings, total = await self.store.search(
            db,
            status=self._status_filter(status),
            customer_id=customer_id,
            provider_id=provider_id,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return {
            "bookings": bookings,
            "total": total,
            "page": page,
            "pages": math.ceil(total / limit) if total else 0,
            "limit": limit,
        }

    # ==================== TRANSITIONS ====================

    async def confirm_booking(
        self,
        db: AsyncSession,
        actor: User,
        booking_id: UUID,
        provider_notes: str | None = None,
    ) -> Booking:
        """Provider accepts a pending booking."""
        booking = await self._transition(
            db,
            actor,
            booking_id,
            BookingAction.CONFIRM,
            PROVIDER_ONLY,
            lambda now, role, notes: {"confirmed_at": now, "provider_notes": notes},
            prepare_note=lambda: self._bounded(provider_notes, "provider_notes"),
        )
        await self.statistics.increment_total_bookings(booking.provider_id)
        await self.notifier.notify_booking_event(booking, NotificationService.BOOKING_CONFIRMED)
        return booking

    async def start_booking(self, db: AsyncSession, actor: User, booking_id: UUID) -> Booking:
        """Provider marks a confirmed booking as in progress."""
        booking = await self._transition(
            db,
            actor,
            booking_id,
            BookingAction.START,
            PROVIDER_ONLY,
            lambda now, role, note: {},
        )
        await self.notifier.notify_booking_event(booking, NotificationService.BOOKING_STARTED)
        return booking

    async def complete_booking(self, db: AsyncSession, actor: User, booking_id: UUID) -> Booking:
        """Provider closes a confirmed or in-progress booking."""
        booking = await self._transition(
            db,
            actor,
            booking_id,
            BookingAction.COMPLETE,
            PROVIDER_ONLY,
            lambda now, role, note: {"completed_at": now},
        )
        await self.statistics.increment_completed_bookings(booking.provider_id)
        await self.notifier.notify_booking_event(booking, NotificationService.BOOKING_COMPLETED)
        return booking

    async def cancel_booking(
        self,
        db: AsyncSession,
        actor: User,
        booking_id: UUID,
        reason: str,
    ) -> Booking:
        """Customer or provider on the booking cancels it before it finishes.

        ``cancelled_by`` is the role resolved during authorization.
        """

        def validated_reason() -> str:
            cleaned = clean_text(reason)
            if not cleaned:
                raise ValidationError("Cancellation reason is required")
            return self._bounded(cleaned, "reason")

        booking = await self._transition(
            db,
            actor,
            booking_id,
            BookingAction.CANCEL,
            CANCEL_ROLES,
            lambda now, role, reason: {
                "cancelled_at": now,
                "cancellation_reason": reason,
                "cancelled_by": role,
            },
            prepare_note=validated_reason,
        )
        await self.notifier.notify_booking_event(booking, NotificationService.BOOKING_CANCELLED)
        return booking

    # ==================== INTERNALS ====================

    async def _transition(
        self,
        db: AsyncSession,
        actor: User,
        booking_id: UUID,
        action: BookingAction,
        allowed_roles: frozenset[BookingRole],
        build_values: Callable[[datetime, str, str | None], dict[str, Any]],
        prepare_note: Callable[[], str | None] | None = None,
    ) -> Booking:
        """Load, authorize, validate input, check status, then compare-and-swap.

        ``prepare_note`` validates the request text once the booking is known
        to exist and the actor is allowed; its result is passed to
        ``build_values`` and recorded on the history event.
        """
        booking = await self.store.get(db, booking_id)
        role = await self._authorize(db, actor, booking, allowed_roles, action.value)
        note = prepare_note() if prepare_note else None
        target = assert_booking_transition(booking.status, action)

        values = build_values(datetime.now(UTC), role.value, note)
        applied = await self.store.apply_transition(
            db,
            booking,
            ACTION_SOURCES[action],
            target,
            values,
            actor.id,
            role.value,
            note=note,
        )
        if not applied:
            booking_number = booking.booking_number
            await db.rollback()
            current = await self.store.get(db, booking_id, refresh=True)
            logger.warning(
                f"Lost race to {action.value} booking {booking_number}; "
                f"now {current.status}"
            )
            raise InvalidTransition(action.value, current.status, target)

        await db.commit()
        await db.refresh(booking)
        logger.info(
            f"Booking {booking.booking_number}: {action.value} by {role.value} "
            f"{actor.id} -> {booking.status}"
        )
        return booking

    async def _authorize(
        self,
        db: AsyncSession,
        actor: User,
        booking: Booking,
        allowed_roles: frozenset[BookingRole],
        action: str,
    ) -> BookingRole:
        """Resolve the actor's role on this booking and check it is allowed."""
        role = await self._resolve_role(db, actor, booking)
        if role is None or role not in allowed_roles:
            raise AuthorizationError(f"You don't have permission to {action} this booking")
        return role

    async def _resolve_role(
        self, db: AsyncSession, actor: User, booking: Booking
    ) -> BookingRole | None:
        if booking.customer_id == actor.id:
            return BookingRole.CUSTOMER
        provider = await self.directory.get_provider_for_user(db, actor.id)
        if provider and provider.id == booking.provider_id:
            return BookingRole.PROVIDER
        if actor.role == BookingRole.ADMIN.value:
            return BookingRole.ADMIN
        return None

    def _bounded(self, value: str | None, field: str) -> str | None:
        value = clean_text(value)
        if value and len(value) > settings.booking_notes_max_length:
            raise ValidationError(
                f"{field} must be at most {settings.booking_notes_max_length} characters"
            )
        return value

    def _status_filter(self, status: str | None) -> str | None:
        if not status:
            return None
        if status not in {s.value for s in BookingStatus}:
            raise ValidationError(f"Unknown booking status: {status}")
        return status


booking_service = BookingService()
