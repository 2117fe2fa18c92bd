import pytest

from salon_booking.core.exceptions import NotFoundError, ValidationError
from salon_booking.models.appointment import AppointmentStatus
from salon_booking.services.conflicts import (
    ConflictGuard,
    find_conflicts,
    is_interval_free,
)
from salon_booking.utils.intervals import TimeInterval
from tests.conftest import OTHER_STAFF_ID, STAFF_ID, at, make_appointment


class TestFindConflicts:
    def test_overlapping_active_appointment_conflicts(self):
        existing = make_appointment(at(10), 60)
        existing.id = 1

        conflicts = find_conflicts(TimeInterval(at(10, 30), at(11, 30)), [existing])

        assert conflicts == [existing]

    def test_abutting_appointments_do_not_conflict(self):
        existing = make_appointment(at(10), 60)

        assert is_interval_free(TimeInterval(at(11), at(12)), [existing])
        assert is_interval_free(TimeInterval(at(9), at(10)), [existing])

    @pytest.mark.parametrize(
        "status", [AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW]
    )
    def test_inactive_appointments_never_conflict(self, status):
        existing = make_appointment(at(10), 60, status=status)

        assert is_interval_free(TimeInterval(at(10), at(11)), [existing])

    @pytest.mark.parametrize(
        "status",
        [
            AppointmentStatus.PENDING,
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.COMPLETED,
        ],
    )
    def test_other_statuses_hold_the_slot(self, status):
        existing = make_appointment(at(10), 60, status=status)

        assert not is_interval_free(TimeInterval(at(10), at(11)), [existing])

    def test_excluded_appointment_is_ignored(self):
        existing = make_appointment(at(10), 60)
        existing.id = 7

        interval = TimeInterval(at(10), at(11))
        assert is_interval_free(interval, [existing], exclude_appointment_id=7)
        assert not is_interval_free(interval, [existing], exclude_appointment_id=8)


class TestConflictGuard:
    @pytest.mark.asyncio
    async def test_free_calendar_is_available(self, repository):
        guard = ConflictGuard(repository)

        assert await guard.is_available(STAFF_ID, at(10), at(11))

    @pytest.mark.asyncio
    async def test_busy_interval_is_unavailable(self, repository):
        repository.add_appointment(make_appointment(at(10), 60))
        guard = ConflictGuard(repository)

        assert not await guard.is_available(STAFF_ID, at(10, 30), at(11, 30))
        assert await guard.is_available(STAFF_ID, at(11), at(12))

    @pytest.mark.asyncio
    async def test_other_staff_calendars_are_independent(self, repository):
        repository.add_appointment(make_appointment(at(10), 60))
        guard = ConflictGuard(repository)

        assert await guard.is_available(OTHER_STAFF_ID, at(10), at(11))

    @pytest.mark.asyncio
    async def test_own_appointment_can_be_reconfirmed(self, repository):
        booked = repository.add_appointment(make_appointment(at(10), 60))
        guard = ConflictGuard(repository)

        assert not await guard.is_available(STAFF_ID, at(10), at(11))
        assert await guard.is_available(
            STAFF_ID, at(10), at(11), exclude_appointment_id=booked.id
        )

    @pytest.mark.asyncio
    async def test_unknown_staff_raises_not_found(self, repository):
        guard = ConflictGuard(repository)

        with pytest.raises(NotFoundError):
            await guard.is_available(999, at(10), at(11))

    @pytest.mark.asyncio
    async def test_inverted_interval_is_rejected(self, repository):
        guard = ConflictGuard(repository)

        with pytest.raises(ValidationError):
            await guard.is_available(STAFF_ID, at(11), at(10))
