from datetime import datetime, timedelta, timezone
from typing import Optional

from salon_booking.models.appointment import Appointment, ReminderChannel

# Hours before the appointment, in dispatch order
REMINDER_OFFSETS = (timedelta(hours=24), timedelta(hours=2), timedelta(hours=1))
REMINDER_CHANNELS = (ReminderChannel.EMAIL, ReminderChannel.SMS)


def generate_reminders(
    appointment_start: datetime, now: Optional[datetime] = None
) -> list[tuple[ReminderChannel, datetime]]:
    """Derive the reminder schedule for an appointment.

    One reminder per channel for each offset whose instant is still in the
    future. Appointments booked with less lead time than an offset simply
    skip that offset.
    """
    now = now or datetime.now(timezone.utc)
    reminders = []
    for offset in REMINDER_OFFSETS:
        scheduled_for = appointment_start - offset
        if scheduled_for > now:
            reminders.extend((channel, scheduled_for) for channel in REMINDER_CHANNELS)
    return reminders


def schedule_reminders(
    appointment: Appointment, now: Optional[datetime] = None
) -> list[tuple[ReminderChannel, datetime]]:
    """Replace the appointment's reminder list with a fresh schedule."""
    schedule = generate_reminders(appointment.start_time, now)
    appointment.replace_reminders(schedule)
    return schedule
