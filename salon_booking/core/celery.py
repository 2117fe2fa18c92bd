from celery import Celery
import structlog

from salon_booking.core.config import settings

logger = structlog.get_logger(__name__)

# Create Celery instance
celery_app = Celery(
    "salon_booking",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["salon_booking.tasks.notifications"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
    task_routes={
        "salon_booking.tasks.notifications.*": {"queue": "notifications"},
    },
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
    beat_schedule={
        "dispatch-due-reminders": {
            "task": "salon_booking.tasks.notifications.dispatch_due_reminders",
            "schedule": float(settings.REMINDER_SWEEP_INTERVAL_SECONDS),
        },
    },
)
