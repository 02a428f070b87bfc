"""Celery background tasks for queued booking notifications."""

import asyncio
import logging
from typing import Any

from app.services.notification_service import NotificationService
from app.worker import celery_app

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


async def _send(channel_ref: str, message: str, metadata: dict[str, Any]) -> None:
    service = NotificationService()
    try:
        await service.send_channel_message(channel_ref, message, metadata)
    finally:
        await service.close()


@celery_app.task(bind=True, max_retries=3)
def send_channel_message_task(self, channel_ref: str, message: str, metadata: dict[str, Any]):
    """Post a booking event to the chat backend from a worker.

    Retries happen here, in the worker, never in the request that queued it.
    """
    try:
        run_async(_send(channel_ref, message, metadata))
        return {"status": "sent", "channel": channel_ref}
    except Exception as exc:
        logger.warning(f"Chat delivery to {channel_ref} failed: {exc}")
        raise self.retry(exc=exc, countdown=60)
