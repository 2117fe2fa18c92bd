from datetime import date as date_type, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional, Sequence
import logging
from zoneinfo import ZoneInfo

from salon_booking.core.config import settings
from salon_booking.core.exceptions import NotFoundError, ValidationError
from salon_booking.models.appointment import Appointment
from salon_booking.models.working_hours import resolve_working_hours, working_window
from salon_booking.services.conflicts import is_interval_free
from salon_booking.utils.intervals import TimeInterval


logger = logging.getLogger(__name__)


def enumerate_slots(
    work_start: datetime,
    work_end: datetime,
    total_duration_minutes: int,
    appointments: Iterable[Appointment],
    granularity_minutes: int = 30,
) -> list[datetime]:
    """
    Enumerate bookable start times inside a working window.

    Candidates start at ``work_start`` and advance by ``granularity_minutes``.
    A candidate ``[t, t + duration)`` is kept when it ends no later than
    ``work_end`` and overlaps none of the active ``appointments``. Every
    candidate is scanned against every appointment.

    Stepping happens on absolute (UTC) time so a DST change inside the window
    does not skew the grid; results are returned in ``work_start``'s zone.

    Returns:
        Strictly ascending list of aware start instants, possibly empty.
    """
    step = timedelta(minutes=granularity_minutes)
    duration = timedelta(minutes=total_duration_minutes)
    zone = work_start.tzinfo
    busy = list(appointments)

    current = work_start.astimezone(timezone.utc)
    closing = work_end.astimezone(timezone.utc)
    slots = []

    while current < closing:
        candidate_end = current + duration
        if candidate_end > closing:
            # Later candidates end even later
            break

        if is_interval_free(TimeInterval(current, candidate_end), busy):
            slots.append(current.astimezone(zone))

        current += step

    return slots


class AvailabilityEngine:
    """Computes the free start times of a staff member on a calendar day."""

    def __init__(
        self,
        repository,
        tz: Optional[tzinfo] = None,
        granularity_minutes: Optional[int] = None,
        default_work_start: Optional[time] = None,
        default_work_end: Optional[time] = None,
    ):
        self.repository = repository
        self.tz = tz or ZoneInfo(settings.SALON_TIMEZONE)
        self.granularity_minutes = (
            granularity_minutes or settings.SLOT_GRANULARITY_MINUTES
        )
        self.default_work_start = default_work_start or settings.DEFAULT_WORK_START
        self.default_work_end = default_work_end or settings.DEFAULT_WORK_END

    async def get_working_window(
        self, staff_id: int, day: date_type
    ) -> Optional[tuple[datetime, datetime]]:
        """Resolve the staff member's working window on ``day``, or None on a day off."""
        rows = await self.repository.get_staff_working_hours(staff_id)
        row, is_day_off = resolve_working_hours(rows, day)

        if is_day_off:
            logger.info(f"Staff {staff_id} has a day off on {day}")
            return None

        if row is None:
            logger.debug(
                f"No working hours configured for staff {staff_id}, using default "
                f"{self.default_work_start}-{self.default_work_end}"
            )
            return working_window(
                day, self.default_work_start, self.default_work_end, self.tz
            )

        return row.window_on(day, self.tz)

    async def compute_available_slots(
        self, staff_id: int, day: date_type, service_durations: Sequence[int]
    ) -> list[datetime]:
        """Get bookable start times for the requested services on ``day``.

        The day and the working hours are read in the salon timezone. The
        staff member's active appointments for the day are loaded once and
        scanned in memory for every candidate.
        """
        if not service_durations:
            raise ValidationError("At least one service duration is required")
        if any(duration <= 0 for duration in service_durations):
            raise ValidationError("Service durations must be positive")
        total_duration = sum(service_durations)

        staff = await self.repository.get_staff(staff_id)
        if not staff:
            raise NotFoundError(f"Staff {staff_id} not found", staff_id=staff_id)

        window = await self.get_working_window(staff_id, day)
        if window is None:
            return []
        work_start, work_end = window

        day_start = datetime.combine(day, time.min, tzinfo=self.tz)
        day_end = day_start + timedelta(days=1)
        appointments = await self.repository.find_active_appointments(
            staff_id, day_start, day_end
        )

        slots = enumerate_slots(
            work_start,
            work_end,
            total_duration,
            appointments,
            self.granularity_minutes,
        )

        logger.info(
            f"Availability for staff {staff_id} on {day}: {len(slots)} slots for "
            f"{total_duration} minutes against {len(appointments)} appointments"
        )
        return slots
