from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    Boolean,
    ForeignKey,
    Numeric,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from salon_booking.core.database import Base
from salon_booking.utils.intervals import TimeInterval
import enum
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional


class AppointmentStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


# Statuses that no longer hold a staff member's time
INACTIVE_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)
INACTIVE_STATUS_VALUES = tuple(s.value for s in INACTIVE_STATUSES)


class PaymentStatus(enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class PaymentMethod(enum.Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"


class ReminderChannel(enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class Appointment(Base):
    """Booked appointment: line items, derived end time, payment and reminders."""

    __tablename__ = "appointments"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(
        UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )

    # Appointment participants
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)

    # Scheduling details
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)

    # Status management
    status = Column(
        String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True
    )
    status_changed_at = Column(DateTime(timezone=True), server_default=func.now())

    # Payment
    payment_status = Column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    payment_amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    payment_transaction_id = Column(String(255), nullable=True)

    notes = Column(Text, nullable=True)

    # Group booking
    is_group = Column(Boolean, default=False, nullable=False)
    group_id = Column(String(64), nullable=True)
    group_size = Column(Integer, nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_end_after_start"),
        CheckConstraint("payment_amount >= 0", name="check_non_negative_payment"),
        Index("ix_appointments_staff_start", "staff_id", "start_time"),
    )
    __mapper_args__ = {"eager_defaults": True}

    # Relationships
    staff = relationship("Staff")
    customer = relationship("Customer")
    line_items = relationship(
        "AppointmentLineItem",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentLineItem.position",
    )
    reminders = relationship(
        "AppointmentReminder",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentReminder.scheduled_for",
    )

    # Status transition rules
    _ALLOWED_TRANSITIONS = {
        AppointmentStatus.PENDING: [
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        ],
        AppointmentStatus.CONFIRMED: [
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        ],
        AppointmentStatus.COMPLETED: [],  # Final state
        AppointmentStatus.CANCELLED: [
            AppointmentStatus.PENDING,
            AppointmentStatus.CONFIRMED,
        ],
        AppointmentStatus.NO_SHOW: [],  # Final state
    }

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        """Check if appointment can move to the new status (same status is a no-op)."""
        current = AppointmentStatus(self.status)
        if new_status == current:
            return True
        return new_status in self._ALLOWED_TRANSITIONS.get(current, [])

    def transition_to(self, new_status: AppointmentStatus) -> bool:
        if not self.can_transition_to(new_status):
            return False
        if self.status == new_status.value:
            return True

        self.status = new_status.value
        self.status_changed_at = datetime.now(timezone.utc)
        return True

    @property
    def is_active(self) -> bool:
        """Active appointments hold the staff member's time."""
        return self.status not in INACTIVE_STATUS_VALUES

    @property
    def total_duration_minutes(self) -> int:
        return sum(item.duration_minutes for item in self.line_items)

    @property
    def total_price(self) -> Decimal:
        return sum((Decimal(str(item.price)) for item in self.line_items), Decimal("0"))

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_time, self.end_time)

    def recalculate_end_time(self) -> datetime:
        """Derive end time from start time and line item durations."""
        total = self.total_duration_minutes
        if total <= 0:
            raise ValueError("Appointment must contain at least one timed service")
        self.end_time = self.start_time + timedelta(minutes=total)
        return self.end_time

    def reschedule(self, new_start: datetime) -> None:
        self.start_time = new_start
        self.recalculate_end_time()

    def replace_reminders(
        self, schedule: Iterable[tuple[ReminderChannel, datetime]]
    ) -> None:
        self.reminders = [
            AppointmentReminder(channel=channel.value, scheduled_for=at, sent=False)
            for channel, at in schedule
        ]

    def append_note(self, note: str) -> None:
        self.notes = f"{self.notes}\n{note}" if self.notes else note

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, status='{self.status}', "
            f"start='{self.start_time}', end='{self.end_time}', "
            f"customer_id={self.customer_id}, staff_id={self.staff_id})>"
        )


class AppointmentLineItem(Base):
    """One booked service inside an appointment, snapshotting duration and price."""

    __tablename__ = "appointment_line_items"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(
        Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_positive_duration"),
        CheckConstraint("price >= 0", name="check_non_negative_price"),
    )

    appointment = relationship("Appointment", back_populates="line_items")

    def __repr__(self):
        return (
            f"<AppointmentLineItem(service_id={self.service_id}, "
            f"duration={self.duration_minutes}min, price={self.price})>"
        )


class AppointmentReminder(Base):
    """Scheduled reminder for an appointment on one notification channel."""

    __tablename__ = "appointment_reminders"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(
        Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    channel = Column(String(10), nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, index=True)
    sent = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    appointment = relationship("Appointment", back_populates="reminders")

    def mark_sent(self, at: Optional[datetime] = None) -> None:
        self.sent = True
        self.sent_at = at or datetime.now(timezone.utc)

    def __repr__(self):
        return (
            f"<AppointmentReminder(channel='{self.channel}', "
            f"scheduled_for='{self.scheduled_for}', sent={self.sent})>"
        )
