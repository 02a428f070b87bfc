"""Best-effort booking notifications over the chat channel.

Every booking has a chat channel (``booking-<id>``) shared by the customer
and the provider. Lifecycle events are posted there as system messages. The
chat backend is external and unreliable, so ``notify`` never raises: errors
are logged and the booking operation carries on.
"""

import logging
from typing import Any

import httpx

from app.config import settings
from app.models.booking import Booking

logger = logging.getLogger(__name__)


class NotificationService:
    """Dispatches booking events to the chat backend."""

    # Event types
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_STARTED = "booking_started"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_CANCELLED = "booking_cancelled"

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        """Initialize notification service."""
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=settings.chat_api_timeout_seconds)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== DISPATCH ====================

    async def notify(
        self,
        channel_ref: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Fire-and-forget notification. Never raises, never retries inline.

        Args:
            channel_ref: Chat channel id, e.g. 'booking-<uuid>'
            message: Human readable text
            metadata: Structured payload attached to the message
        """
        mode = settings.notification_dispatch_mode
        if mode == "disabled":
            return

        try:
            if mode == "celery":
                from app.tasks import send_channel_message_task

                send_channel_message_task.delay(channel_ref, message, metadata or {})
            else:
                await self.send_channel_message(channel_ref, message, metadata or {})
        except Exception:
            logger.error(f"Notification to {channel_ref} failed", exc_info=True)

    async def send_channel_message(
        self,
        channel_ref: str,
        message: str,
        metadata: dict[str, Any],
    ) -> None:
        """Post a system message to the chat backend.

        Raises on transport or HTTP errors; callers decide whether to swallow.
        """
        if not settings.chat_api_url:
            logger.debug(f"Chat backend not configured; dropping message for {channel_ref}")
            return

        headers = {"Content-Type": "application/json"}
        if settings.chat_api_key:
            headers["Authorization"] = f"Bearer {settings.chat_api_key}"

        response = await self.http_client.post(
            f"{settings.chat_api_url.rstrip('/')}/channels/messaging/{channel_ref}/message",
            headers=headers,
            json={"message": {"text": message, "type": "system", **metadata}},
        )
        response.raise_for_status()

    # ==================== BOOKING EVENTS ====================

    async def notify_booking_event(self, booking: Booking, event: str) -> None:
        """Post the standard message for a lifecycle event."""
        try:
            text = self._event_text(booking, event)
            metadata = {
                "event": event,
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "status": booking.status,
            }
        except Exception:
            logger.error(f"Could not build {event} notification", exc_info=True)
            return
        await self.notify(booking.channel_ref, text, metadata)

    def _event_text(self, booking: Booking, event: str) -> str:
        number = booking.booking_number
        if event == self.BOOKING_CREATED:
            return (
                f"New booking #{number} for {booking.service_name} on "
                f"{booking.scheduled_date.isoformat()} at {booking.scheduled_time}."
            )
        if event == self.BOOKING_CONFIRMED:
            return f"Booking #{number} has been confirmed by the provider."
        if event == self.BOOKING_STARTED:
            return f"Work on booking #{number} has started."
        if event == self.BOOKING_COMPLETED:
            return f"Booking #{number} is complete."
        if event == self.BOOKING_CANCELLED:
            return f"Booking #{number} was cancelled by the {booking.cancelled_by}: {booking.cancellation_reason}"
        return f"Booking #{number} updated: {booking.status}."


# Singleton instance
notification_service = NotificationService()
