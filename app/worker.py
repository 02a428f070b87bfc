"""Celery worker configuration.

Only used when ``notification_dispatch_mode`` is ``celery``: booking
notifications are then queued and posted to the chat backend by a worker.

    celery -A app.worker worker -Q booking-notifications
"""

from celery import Celery

from app.config import settings

NOTIFICATION_QUEUE = "booking-notifications"

celery_app = Celery(
    "servicehub_tasks",
    broker=settings.redis_url,
    include=["app.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_default_queue=NOTIFICATION_QUEUE,

    # Notifications are fire-and-forget; nobody reads results
    task_ignore_result=True,

    # Redeliver if a worker dies mid-post
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=60,
    task_soft_time_limit=45,

    worker_prefetch_multiplier=1,
    worker_concurrency=settings.notification_worker_concurrency,

    task_default_retry_delay=60,
    task_max_retries=3,
)


if __name__ == "__main__":
    celery_app.start()
