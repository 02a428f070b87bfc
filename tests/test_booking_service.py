"""Tests for the booking lifecycle engine."""

import asyncio
import logging
import re
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import func, select

from app.config import settings
from app.core.exceptions import (
    AuthorizationError,
    InvalidTransition,
    NotFoundError,
    ProviderUnavailable,
    ValidationError,
)
from app.domain.booking_state import BookingStatus
from app.models import Booking
from app.services.booking_service import BookingService
from app.services.booking_store import booking_store
from app.services.notification_service import NotificationService
from app.services.statistics_service import StatisticsService
from tests.conftest import RecordingNotifier, booking_request, provider_counters


async def _create(engine, db, market, **overrides):
    return await engine.create_booking(
        db, market.customer, booking_request(market.service.id, **overrides)
    )


def _next_weekday(weekday: int) -> date:
    """Next date after today falling on ``weekday`` (Monday is 0)."""
    day = date.today() + timedelta(days=1)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    return day


async def _booking_count(db) -> int:
    result = await db.execute(select(func.count()).select_from(Booking))
    return result.scalar()


# ==================== CREATION ====================


async def test_create_booking_snapshots_and_defaults(booking_engine, db, market, session_factory, notifier):
    booking = await _create(booking_engine, db, market)

    assert booking.status == BookingStatus.PENDING.value
    assert booking.version == 1
    assert booking.customer_id == market.customer.id
    assert booking.provider_id == market.provider.id
    assert booking.service_name == "Leak repair"
    assert booking.service_price == Decimal("80.00")
    assert booking.notes == "Kitchen sink"
    assert booking.confirmed_at is None
    assert booking.cancelled_by is None
    assert re.fullmatch(r"BK\d{13}\d{4}", booking.booking_number)
    assert booking.channel_ref == f"booking-{booking.id}"

    assert await provider_counters(session_factory, market.provider.id) == (0, 0)
    assert notifier.events == [NotificationService.BOOKING_CREATED]
    assert notifier.sent[0][0] == booking.channel_ref


async def test_create_booking_numbers_are_unique(booking_engine, db, market):
    numbers = set()
    for _ in range(5):
        booking = await _create(booking_engine, db, market)
        numbers.add(booking.booking_number)

    assert len(numbers) == 5


async def test_create_booking_strips_text(booking_engine, db, market):
    booking = await _create(
        booking_engine, db, market, customer_name="  Carla  ", notes="   "
    )

    assert booking.customer_name == "Carla"
    assert booking.notes is None


async def test_only_customers_create_bookings(booking_engine, db, market):
    with pytest.raises(AuthorizationError):
        await booking_engine.create_booking(
            db, market.provider_user, booking_request(market.service.id)
        )


@pytest.mark.parametrize("field", ["customer_name", "customer_phone", "customer_address"])
async def test_create_booking_requires_contact_fields(booking_engine, db, market, field):
    with pytest.raises(ValidationError):
        await _create(booking_engine, db, market, **{field: "   "})

    assert await _booking_count(db) == 0


async def test_create_booking_rejects_long_notes(booking_engine, db, market, monkeypatch):
    monkeypatch.setattr(settings, "booking_notes_max_length", 10)

    with pytest.raises(ValidationError):
        await _create(booking_engine, db, market, notes="x" * 11)


async def test_inactive_service_is_not_found(booking_engine, db, market):
    with pytest.raises(NotFoundError):
        await booking_engine.create_booking(
            db, market.customer, booking_request(market.inactive_service.id)
        )

    assert await _booking_count(db) == 0


async def test_missing_service_is_not_found(booking_engine, db, market):
    with pytest.raises(NotFoundError):
        await booking_engine.create_booking(db, market.customer, booking_request(uuid4()))


async def test_unapproved_provider_is_unavailable(booking_engine, db, market):
    with pytest.raises(ProviderUnavailable):
        await booking_engine.create_booking(
            db, market.customer, booking_request(market.unapproved_service.id)
        )

    assert await _booking_count(db) == 0


async def test_inactive_provider_is_unavailable(booking_engine, db, market):
    with pytest.raises(ProviderUnavailable):
        await booking_engine.create_booking(
            db, market.customer, booking_request(market.suspended_service.id)
        )


async def test_working_hours_ignored_by_default(booking_engine, db, market):
    booking = await _create(
        booking_engine, db, market, scheduled_date=_next_weekday(6), scheduled_time="23:00"
    )

    assert booking.status == BookingStatus.PENDING.value


async def test_working_hours_enforced_when_enabled(booking_engine, db, market, monkeypatch):
    monkeypatch.setattr(settings, "enforce_provider_working_hours", True)
    monday = _next_weekday(0)

    with pytest.raises(ProviderUnavailable):
        await _create(booking_engine, db, market, scheduled_date=_next_weekday(6))
    with pytest.raises(ProviderUnavailable):
        await _create(booking_engine, db, market, scheduled_date=monday, scheduled_time="18:00")
    with pytest.raises(ProviderUnavailable):
        await _create(booking_engine, db, market, scheduled_date=monday, scheduled_time="08:59")

    booking = await _create(booking_engine, db, market, scheduled_date=monday, scheduled_time="09:00")
    assert booking.status == BookingStatus.PENDING.value


# ==================== LIFECYCLE SCENARIOS ====================


async def test_full_lifecycle_updates_counters(booking_engine, db, market, session_factory, notifier):
    booking = await _create(booking_engine, db, market)

    booking = await booking_engine.confirm_booking(
        db, market.provider_user, booking.id, provider_notes="Bring the ladder"
    )
    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.confirmed_at is not None
    assert booking.provider_notes == "Bring the ladder"
    assert await provider_counters(session_factory, market.provider.id) == (1, 0)

    booking = await booking_engine.start_booking(db, market.provider_user, booking.id)
    assert booking.status == BookingStatus.IN_PROGRESS.value

    booking = await booking_engine.complete_booking(db, market.provider_user, booking.id)
    assert booking.status == BookingStatus.COMPLETED.value
    assert booking.completed_at is not None
    assert booking.version == 4
    assert await provider_counters(session_factory, market.provider.id) == (1, 1)

    assert notifier.events == [
        NotificationService.BOOKING_CREATED,
        NotificationService.BOOKING_CONFIRMED,
        NotificationService.BOOKING_STARTED,
        NotificationService.BOOKING_COMPLETED,
    ]


async def test_customer_cancels_pending_then_confirm_fails(booking_engine, db, market, session_factory):
    booking = await _create(booking_engine, db, market)

    booking = await booking_engine.cancel_booking(
        db, market.customer, booking.id, "schedule conflict"
    )
    assert booking.status == BookingStatus.CANCELLED.value
    assert booking.cancelled_by == "customer"
    assert booking.cancellation_reason == "schedule conflict"
    assert booking.cancelled_at is not None

    with pytest.raises(InvalidTransition):
        await booking_engine.confirm_booking(db, market.provider_user, booking.id)

    assert await provider_counters(session_factory, market.provider.id) == (0, 0)


async def test_complete_directly_from_confirmed(booking_engine, db, market, session_factory):
    booking = await _create(booking_engine, db, market)
    await booking_engine.confirm_booking(db, market.provider_user, booking.id)

    booking = await booking_engine.complete_booking(db, market.provider_user, booking.id)

    assert booking.status == BookingStatus.COMPLETED.value
    assert await provider_counters(session_factory, market.provider.id) == (1, 1)


async def test_timestamps_are_not_restamped(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)
    booking = await booking_engine.confirm_booking(db, market.provider_user, booking.id)
    confirmed_at = booking.confirmed_at

    await booking_engine.start_booking(db, market.provider_user, booking.id)
    booking = await booking_engine.cancel_booking(db, market.provider_user, booking.id, "No parts")

    assert booking.confirmed_at == confirmed_at
    assert booking.completed_at is None
    assert booking.cancelled_by == "provider"


@pytest.mark.parametrize("steps", [[], ["confirm"], ["confirm", "start"]])
async def test_provider_cancels_from_any_open_state(booking_engine, db, market, steps):
    booking = await _create(booking_engine, db, market)
    for step in steps:
        await getattr(booking_engine, f"{step}_booking")(db, market.provider_user, booking.id)

    booking = await booking_engine.cancel_booking(db, market.provider_user, booking.id, "Sick")

    assert booking.status == BookingStatus.CANCELLED.value
    assert booking.cancelled_by == "provider"


@pytest.mark.parametrize("finisher", ["complete", "cancel"])
async def test_terminal_bookings_cannot_be_cancelled(booking_engine, db, market, finisher):
    booking = await _create(booking_engine, db, market)
    await booking_engine.confirm_booking(db, market.provider_user, booking.id)
    if finisher == "complete":
        await booking_engine.complete_booking(db, market.provider_user, booking.id)
    else:
        await booking_engine.cancel_booking(db, market.customer, booking.id, "Changed mind")

    with pytest.raises(InvalidTransition):
        await booking_engine.cancel_booking(db, market.customer, booking.id, "Again")

    stored = await booking_store.get(db, booking.id, refresh=True)
    assert stored.status in {BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value}
    assert stored.version == 3


async def test_start_requires_confirmed(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)

    with pytest.raises(InvalidTransition) as exc_info:
        await booking_engine.start_booking(db, market.provider_user, booking.id)

    assert exc_info.value.current == BookingStatus.PENDING.value


async def test_complete_twice_counts_once(booking_engine, db, market, session_factory):
    booking = await _create(booking_engine, db, market)
    await booking_engine.confirm_booking(db, market.provider_user, booking.id)
    await booking_engine.complete_booking(db, market.provider_user, booking.id)

    with pytest.raises(InvalidTransition):
        await booking_engine.complete_booking(db, market.provider_user, booking.id)

    assert await provider_counters(session_factory, market.provider.id) == (1, 1)


async def test_cancel_requires_reason(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)

    with pytest.raises(ValidationError):
        await booking_engine.cancel_booking(db, market.customer, booking.id, "   ")
    with pytest.raises(ValidationError):
        await booking_engine.cancel_booking(db, market.customer, booking.id, "x" * 501)


# ==================== AUTHORIZATION ====================


async def test_customer_cannot_confirm_own_booking(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)

    with pytest.raises(AuthorizationError):
        await booking_engine.confirm_booking(db, market.customer, booking.id)


async def test_other_provider_cannot_touch_booking(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)

    with pytest.raises(AuthorizationError):
        await booking_engine.confirm_booking(db, market.other_provider_user, booking.id)
    with pytest.raises(AuthorizationError):
        await booking_engine.cancel_booking(db, market.other_provider_user, booking.id, "Mine")
    with pytest.raises(AuthorizationError):
        await booking_engine.get_booking(db, market.other_provider_user, booking.id)


async def test_other_customer_cannot_view_or_cancel(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)

    with pytest.raises(AuthorizationError):
        await booking_engine.get_booking(db, market.other_customer, booking.id)
    with pytest.raises(AuthorizationError):
        await booking_engine.cancel_booking(db, market.other_customer, booking.id, "Nope")


async def test_authorization_checked_before_status(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)
    await booking_engine.cancel_booking(db, market.customer, booking.id, "Changed mind")

    with pytest.raises(AuthorizationError):
        await booking_engine.confirm_booking(db, market.customer, booking.id)


async def test_admin_can_view_but_not_change_booking(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)

    viewed = await booking_engine.get_booking(db, market.admin, booking.id)
    assert viewed.id == booking.id

    with pytest.raises(AuthorizationError):
        await booking_engine.confirm_booking(db, market.admin, booking.id)

    with pytest.raises(AuthorizationError):
        await booking_engine.cancel_booking(db, market.admin, booking.id, "Fraud check")

    stored = await booking_store.get(db, booking.id, refresh=True)
    assert stored.status == BookingStatus.PENDING.value
    assert stored.cancelled_by is None

    history = await booking_engine.get_booking_history(db, market.admin, booking.id)
    assert len(history) == 1


async def test_unknown_booking_is_not_found(booking_engine, db, market):
    with pytest.raises(NotFoundError):
        await booking_engine.get_booking(db, market.customer, uuid4())
    with pytest.raises(NotFoundError):
        await booking_engine.confirm_booking(db, market.provider_user, uuid4())
    with pytest.raises(NotFoundError):
        await booking_engine.cancel_booking(db, market.customer, uuid4(), "")
    with pytest.raises(NotFoundError):
        await booking_engine.confirm_booking(
            db, market.provider_user, uuid4(), provider_notes="x" * 501
        )


async def test_request_text_checked_after_authorization(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)

    with pytest.raises(AuthorizationError):
        await booking_engine.cancel_booking(db, market.other_customer, booking.id, "   ")
    with pytest.raises(AuthorizationError):
        await booking_engine.confirm_booking(
            db, market.other_provider_user, booking.id, provider_notes="x" * 501
        )


# ==================== HISTORY AND LISTING ====================


async def test_history_records_every_change(booking_engine, db, market):
    booking = await _create(booking_engine, db, market)
    await booking_engine.confirm_booking(db, market.provider_user, booking.id)
    await booking_engine.cancel_booking(db, market.customer, booking.id, "Moved house")

    events = await booking_engine.get_booking_history(db, market.provider_user, booking.id)

    assert [(e.from_status, e.to_status, e.actor_role) for e in events] == [
        (None, "pending", "customer"),
        ("pending", "confirmed", "provider"),
        ("confirmed", "cancelled", "customer"),
    ]
    assert events[-1].note == "Moved house"


async def test_list_customer_bookings_filters_by_owner_and_status(booking_engine, db, market):
    first = await _create(booking_engine, db, market)
    await _create(booking_engine, db, market)
    await booking_engine.cancel_booking(db, market.customer, first.id, "Duplicate")

    mine = await booking_engine.list_customer_bookings(db, market.customer)
    cancelled = await booking_engine.list_customer_bookings(db, market.customer, status="cancelled")
    theirs = await booking_engine.list_customer_bookings(db, market.other_customer)

    assert len(mine) == 2
    assert [b.id for b in cancelled] == [first.id]
    assert theirs == []


async def test_list_rejects_unknown_status(booking_engine, db, market):
    with pytest.raises(ValidationError):
        await booking_engine.list_customer_bookings(db, market.customer, status="archived")


async def test_list_provider_bookings(booking_engine, db, market):
    await _create(booking_engine, db, market)

    assert len(await booking_engine.list_provider_bookings(db, market.provider_user)) == 1
    assert await booking_engine.list_provider_bookings(db, market.other_provider_user) == []

    with pytest.raises(NotFoundError):
        await booking_engine.list_provider_bookings(db, market.customer)


async def test_admin_listing_paginates(booking_engine, db, market):
    for _ in range(3):
        await _create(booking_engine, db, market)

    page = await booking_engine.list_all_bookings(db, market.admin, page=2, limit=2)

    assert page["total"] == 3
    assert page["pages"] == 2
    assert page["page"] == 2
    assert len(page["bookings"]) == 1


async def test_admin_listing_guards(booking_engine, db, market):
    with pytest.raises(AuthorizationError):
        await booking_engine.list_all_bookings(db, market.customer)
    with pytest.raises(ValidationError):
        await booking_engine.list_all_bookings(db, market.admin, limit=0)
    with pytest.raises(ValidationError):
        await booking_engine.list_all_bookings(db, market.admin, page=0)

    empty = await booking_engine.list_all_bookings(db, market.admin)
    assert empty["total"] == 0
    assert empty["pages"] == 0


# ==================== CONCURRENCY ====================


async def test_stale_version_does_not_apply(booking_engine, db, market, session_factory):
    booking = await _create(booking_engine, db, market)

    async with session_factory() as other:
        await booking_engine.confirm_booking(other, market.provider_user, booking.id)

    applied = await booking_store.apply_transition(
        db,
        booking,
        {"pending"},
        "cancelled",
        {"cancellation_reason": "late"},
        market.customer.id,
        "customer",
    )
    await db.rollback()

    assert applied is False


async def test_lost_race_raises_invalid_transition(booking_engine, db, market, session_factory, caplog):
    booking = await _create(booking_engine, db, market)

    async with session_factory() as other:
        await booking_engine.cancel_booking(other, market.customer, booking.id, "Too slow")

    # ``db`` still holds the pending copy of the booking
    with caplog.at_level(logging.WARNING), pytest.raises(InvalidTransition) as exc_info:
        await booking_engine.confirm_booking(db, market.provider_user, booking.id)

    assert exc_info.value.current == BookingStatus.CANCELLED.value
    assert "Lost race" in caplog.text
    assert await provider_counters(session_factory, market.provider.id) == (0, 0)


async def test_concurrent_confirms_only_one_wins(booking_engine, db, market, session_factory):
    booking = await _create(booking_engine, db, market)

    async def confirm():
        async with session_factory() as session:
            return await booking_engine.confirm_booking(session, market.provider_user, booking.id)

    results = await asyncio.gather(confirm(), confirm(), return_exceptions=True)

    winners = [r for r in results if isinstance(r, Booking)]
    losers = [r for r in results if isinstance(r, InvalidTransition)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert await provider_counters(session_factory, market.provider.id) == (1, 0)


# ==================== SIDE EFFECT FAILURES ====================


async def test_notification_failure_does_not_fail_operation(db, market, session_factory, monkeypatch, caplog):
    def reject(request):
        return httpx.Response(503, json={"error": "down"})

    monkeypatch.setattr(settings, "chat_api_url", "http://chat.test")
    notifier = NotificationService(http_client=httpx.AsyncClient(transport=httpx.MockTransport(reject)))
    engine = BookingService(statistics=StatisticsService(session_factory), notifier=notifier)

    with caplog.at_level(logging.ERROR):
        booking = await _create(engine, db, market)
        booking = await engine.confirm_booking(db, market.provider_user, booking.id)

    assert booking.status == BookingStatus.CONFIRMED.value
    assert "Notification to booking-" in caplog.text
    await notifier.close()


async def test_statistics_failure_does_not_fail_operation(db, market, caplog):
    def broken_factory():
        raise RuntimeError("database gone")

    engine = BookingService(statistics=StatisticsService(broken_factory), notifier=RecordingNotifier())
    booking = await _create(engine, db, market)

    with caplog.at_level(logging.ERROR):
        booking = await engine.confirm_booking(db, market.provider_user, booking.id)

    assert booking.status == BookingStatus.CONFIRMED.value
    assert "Failed to increment total_bookings" in caplog.text
