import os
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

os.environ.setdefault("BOOKING_LOCK_BACKEND", "local")
os.environ.setdefault("ENVIRONMENT", "test")

import salon_booking.models  # noqa: E402,F401  registers every mapper
from salon_booking.core.locks import LocalStaffLocks  # noqa: E402
from salon_booking.models.appointment import (  # noqa: E402
    Appointment,
    AppointmentLineItem,
    AppointmentStatus,
    PaymentMethod,
    PaymentStatus,
)
from salon_booking.models.customer import Customer  # noqa: E402
from salon_booking.models.service import Service  # noqa: E402
from salon_booking.models.staff import Staff  # noqa: E402
from salon_booking.services.appointment import AppointmentService  # noqa: E402
from tests.fakes import InMemoryAppointmentRepository, RecordingNotifier  # noqa: E402

STAFF_ID = 1
OTHER_STAFF_ID = 2
CUSTOMER_ID = 100
HAIRCUT_ID = 10
COLOR_ID = 11
BLOWDRY_ID = 12

# Far enough ahead that every reminder offset is still in the future
BOOKING_DAY = date.today() + timedelta(days=30)


def at(hour: int, minute: int = 0, day: date = BOOKING_DAY) -> datetime:
    """Aware UTC instant on the booking day."""
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


def make_appointment(
    start: datetime,
    minutes: int,
    staff_id: int = STAFF_ID,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    service_id: int = HAIRCUT_ID,
) -> Appointment:
    appointment = Appointment(
        customer_id=CUSTOMER_ID,
        staff_id=staff_id,
        start_time=start,
        status=status.value,
        payment_status=PaymentStatus.PENDING.value,
        payment_method=PaymentMethod.CASH.value,
        payment_amount=Decimal("50.00"),
        is_group=False,
        line_items=[
            AppointmentLineItem(
                service_id=service_id,
                position=0,
                duration_minutes=minutes,
                price=Decimal("50.00"),
            )
        ],
        reminders=[],
    )
    appointment.recalculate_end_time()
    return appointment


@pytest.fixture
def staff_members():
    return [
        Staff(id=STAFF_ID, name="Layla Stylist", is_active=True, is_bookable=True),
        Staff(id=OTHER_STAFF_ID, name="Omar Barber", is_active=True, is_bookable=True),
    ]


@pytest.fixture
def customers():
    return [
        Customer(
            id=CUSTOMER_ID,
            name="Sara Customer",
            email="sara@example.com",
            phone="0501234567",
            notify_email=True,
            notify_sms=True,
            notify_push=False,
        )
    ]


@pytest.fixture
def catalog():
    return [
        Service(
            id=HAIRCUT_ID,
            name="Haircut",
            duration_minutes=30,
            price=Decimal("50.00"),
            is_active=True,
        ),
        Service(
            id=COLOR_ID,
            name="Hair Color",
            duration_minutes=90,
            price=Decimal("200.00"),
            is_active=True,
        ),
        Service(
            id=BLOWDRY_ID,
            name="Blow Dry",
            duration_minutes=30,
            price=Decimal("40.00"),
            is_active=True,
        ),
    ]


@pytest.fixture
def repository(staff_members, customers, catalog):
    return InMemoryAppointmentRepository(
        staff=staff_members, customers=customers, services=catalog
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def staff_locks():
    return LocalStaffLocks(wait_seconds=1.0)


@pytest.fixture
def appointment_service(repository, notifier, staff_locks):
    return AppointmentService(
        repository, locks=staff_locks, notifier=notifier, tz=timezone.utc
    )
