"""Overlap detection between a proposed interval and a staff member's calendar."""
from datetime import datetime
from typing import Iterable, Optional

import structlog

from salon_booking.core.exceptions import NotFoundError, ValidationError
from salon_booking.models.appointment import Appointment
from salon_booking.utils.intervals import TimeInterval, overlaps

logger = structlog.get_logger(__name__)


def find_conflicts(
    interval: TimeInterval,
    appointments: Iterable[Appointment],
    exclude_appointment_id: Optional[int] = None,
) -> list[Appointment]:
    """Return active appointments whose interval overlaps ``interval``.

    Cancelled and no-show appointments never conflict. Touching boundaries
    (existing end == proposed start) are not overlaps.
    """
    return [
        appointment
        for appointment in appointments
        if appointment.is_active
        and (exclude_appointment_id is None or appointment.id != exclude_appointment_id)
        and overlaps(interval, appointment.interval)
    ]


def is_interval_free(
    interval: TimeInterval,
    appointments: Iterable[Appointment],
    exclude_appointment_id: Optional[int] = None,
) -> bool:
    return not find_conflicts(interval, appointments, exclude_appointment_id)


class ConflictGuard:
    """Answers whether a staff member is free over a proposed interval."""

    def __init__(self, repository):
        self.repository = repository

    async def is_available(
        self,
        staff_id: int,
        proposed_start: datetime,
        proposed_end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        if proposed_end <= proposed_start:
            raise ValidationError("End time must be after start time")

        staff = await self.repository.get_staff(staff_id)
        if not staff:
            raise NotFoundError(f"Staff {staff_id} not found", staff_id=staff_id)

        interval = TimeInterval(proposed_start, proposed_end)
        appointments = await self.repository.find_active_appointments(
            staff_id, proposed_start, proposed_end
        )
        conflicts = find_conflicts(interval, appointments, exclude_appointment_id)

        if conflicts:
            logger.debug(
                "Interval conflicts with existing appointments",
                staff_id=staff_id,
                start=proposed_start.isoformat(),
                end=proposed_end.isoformat(),
                conflicting_ids=[a.id for a in conflicts],
            )
            return False
        return True
