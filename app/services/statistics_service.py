"""Provider booking counters.

Counters are a derived view of booking status, so increments run in their own
session after the status change has committed. A failed increment is logged
and dropped; it never fails the booking operation.
"""

import logging
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.provider import ServiceProvider

logger = logging.getLogger(__name__)


class StatisticsService:
    """Atomic increments on ServiceProvider counters."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            from app.database import async_session_factory

            self._session_factory = async_session_factory
        return self._session_factory

    async def increment_total_bookings(self, provider_id: UUID) -> bool:
        """Add one to ``total_bookings``. Called once per confirmation."""
        return await self._increment(provider_id, "total_bookings")

    async def increment_completed_bookings(self, provider_id: UUID) -> bool:
        """Add one to ``completed_bookings``. Called once per completion."""
        return await self._increment(provider_id, "completed_bookings")

    async def _increment(self, provider_id: UUID, counter: str) -> bool:
        column = getattr(ServiceProvider, counter)
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    update(ServiceProvider)
                    .where(ServiceProvider.id == provider_id)
                    .values({counter: column + 1})
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
        except Exception:
            logger.error(
                f"Failed to increment {counter} for provider {provider_id}", exc_info=True
            )
            return False

        if result.rowcount == 0:
            logger.warning(f"Provider {provider_id} not found while incrementing {counter}")
            return False
        return True


statistics_service = StatisticsService()
