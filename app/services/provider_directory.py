"""Read-only access to the provider directory and service catalog."""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ProviderUnavailable
from app.models.provider import Service, ServiceProvider
from app.utils.validators import time_to_minutes, weekday_name


class ProviderDirectory:
    """Eligibility lookups used when a booking is created."""

    async def get_provider_for_user(
        self, db: AsyncSession, user_id: UUID
    ) -> ServiceProvider | None:
        """Get the provider record owned by a user, if any."""
        result = await db.execute(
            select(ServiceProvider).where(ServiceProvider.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_bookable_service(
        self, db: AsyncSession, service_id: UUID
    ) -> tuple[Service, ServiceProvider]:
        """Load a service and its provider, checking both can be booked.

        Raises:
            NotFoundError: Service does not exist or is inactive
            ProviderUnavailable: Provider is not approved or not active
        """
        result = await db.execute(select(Service).where(Service.id == service_id))
        service = result.scalar_one_or_none()
        if not service or not service.is_active:
            raise NotFoundError("Service", str(service_id))

        result = await db.execute(
            select(ServiceProvider).where(ServiceProvider.id == service.provider_id)
        )
        provider = result.scalar_one_or_none()
        if not provider or not provider.is_approved or not provider.is_active:
            raise ProviderUnavailable("Provider is not available")

        return service, provider

    def check_working_hours(
        self,
        provider: ServiceProvider,
        scheduled_date: date,
        scheduled_time: str,
    ) -> None:
        """Reject schedules outside the provider's days and hours.

        Raises:
            ProviderUnavailable: Day is off or time is outside working hours
        """
        day = weekday_name(scheduled_date)
        availability = provider.availability or {}
        if not availability.get(day, False):
            raise ProviderUnavailable(f"Provider does not work on {day.capitalize()}")

        start = time_to_minutes(provider.working_hours_start)
        end = time_to_minutes(provider.working_hours_end)
        if not start <= time_to_minutes(scheduled_time) < end:
            raise ProviderUnavailable(
                f"Provider works between {provider.working_hours_start} "
                f"and {provider.working_hours_end}"
            )


provider_directory = ProviderDirectory()
