import asyncio

import structlog
from sqlalchemy.pool import NullPool

from salon_booking.core.celery import celery_app
from salon_booking.core.database import build_engine, build_session_factory

logger = structlog.get_logger(__name__)


@celery_app.task(bind=True)
def send_appointment_notification(self, payload: dict):
    """Forward a notification request to the email/SMS delivery providers.

    Template rendering and provider calls live in the delivery subsystem;
    this task is the boundary where requests leave the booking core.
    """
    for channel in payload.get("channels", []):
        logger.info(
            "Notification handed to delivery provider",
            task_id=self.request.id,
            channel=channel,
            notification_type=payload.get("notification_type"),
            appointment_id=payload.get("appointment_id"),
            customer_id=payload.get("customer_id"),
        )
    return {
        "notification_type": payload.get("notification_type"),
        "appointment_id": payload.get("appointment_id"),
        "channels": payload.get("channels", []),
    }


async def _dispatch_due_reminders() -> int:
    from salon_booking.repositories.appointment import AppointmentRepository
    from salon_booking.services.appointment import AppointmentService

    # Each task run owns its event loop, so it cannot share the API's pool
    engine = build_engine(poolclass=NullPool)
    session_factory = build_session_factory(engine)
    try:
        async with session_factory() as session:
            service = AppointmentService(AppointmentRepository(session))
            return await service.dispatch_due_reminders()
    finally:
        await engine.dispose()


@celery_app.task
def dispatch_due_reminders() -> int:
    """Periodic sweep sending reminders whose scheduled time has passed."""
    sent = asyncio.run(_dispatch_due_reminders())
    logger.info("Reminder sweep finished", reminders_sent=sent)
    return sent
