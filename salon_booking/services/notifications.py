import enum
from typing import Iterable, Sequence

import structlog

from salon_booking.models.appointment import Appointment, ReminderChannel

logger = structlog.get_logger(__name__)


class NotificationType(str, enum.Enum):
    CONFIRMATION = "appointment_confirmation"
    REMINDER = "appointment_reminder"
    STATUS_UPDATE = "appointment_status_update"
    CANCELLATION = "appointment_cancellation"


DEFAULT_CHANNELS = (ReminderChannel.EMAIL.value, ReminderChannel.SMS.value)


def build_payload(
    notification_type: NotificationType,
    appointment: Appointment,
    channels: Iterable[str],
) -> dict:
    """JSON-serialisable task payload describing one notification request."""
    return {
        "notification_type": notification_type.value,
        "appointment_id": appointment.id,
        "customer_id": appointment.customer_id,
        "staff_id": appointment.staff_id,
        "status": appointment.status,
        "start_time": appointment.start_time.isoformat(),
        "end_time": appointment.end_time.isoformat(),
        "channels": list(channels),
    }


class NotificationDispatcher:
    """Hands notification requests to the delivery subsystem.

    Dispatch is fire-and-forget: the return value only says whether the
    request was handed off, never whether it was delivered.
    """

    def dispatch(
        self,
        notification_type: NotificationType,
        appointment: Appointment,
        channels: Sequence[str] = DEFAULT_CHANNELS,
    ) -> bool:
        raise NotImplementedError


class CeleryNotificationDispatcher(NotificationDispatcher):
    """Queues notifications on the Celery ``notifications`` queue."""

    def dispatch(
        self,
        notification_type: NotificationType,
        appointment: Appointment,
        channels: Sequence[str] = DEFAULT_CHANNELS,
    ) -> bool:
        from salon_booking.tasks.notifications import send_appointment_notification

        payload = build_payload(notification_type, appointment, channels)
        try:
            send_appointment_notification.delay(payload)
        except Exception as e:
            logger.error(
                "Failed to queue notification",
                notification_type=notification_type.value,
                appointment_id=appointment.id,
                exc_info=e,
            )
            return False

        logger.info(
            "Notification queued",
            notification_type=notification_type.value,
            appointment_id=appointment.id,
            channels=list(channels),
        )
        return True
