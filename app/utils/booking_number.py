"""Booking number generation."""

import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

BOOKING_NUMBER_PREFIX = "BK"


def format_booking_number(timestamp_ms: int, sequence: int) -> str:
    """Build a booking number like ``BK17290000000000042``.

    The sequence part is the last four digits of the allocated value, zero
    padded. Uniqueness comes from the timestamp and sequence together.
    """
    return f"{BOOKING_NUMBER_PREFIX}{timestamp_ms}{sequence % 10000:04d}"


async def allocate_booking_sequence(db: AsyncSession) -> int:
    """Reserve the next value of the booking number sequence.

    Uses the native ``booking_number_seq`` where the database has sequences,
    otherwise inserts a row into ``booking_number_sequence``.
    """
    from app.models.booking import BOOKING_NUMBER_SEQ, BookingNumberSequence

    if db.get_bind().dialect.supports_sequences:
        return await db.scalar(select(BOOKING_NUMBER_SEQ.next_value()))

    row = BookingNumberSequence()
    db.add(row)
    await db.flush()
    return row.id


async def generate_booking_number(db: AsyncSession) -> str:
    """Generate a unique booking number in format BK<epoch millis><4-digit seq>.

    Args:
        db: Database session used to allocate the sequence value

    Returns:
        str: Booking number like 'BK17290000000000042'
    """
    sequence = await allocate_booking_sequence(db)
    return format_booking_number(int(time.time() * 1000), sequence)
