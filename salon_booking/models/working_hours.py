import enum
import uuid
from datetime import date, datetime, time, tzinfo
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from salon_booking.core.database import Base


class WeekDay(enum.Enum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class WorkingHours(Base):
    """Daily working window for a staff member.

    A row with ``weekday`` set applies to that weekday only; a row with no
    weekday applies to every day. An inactive weekday row marks a day off.
    """

    __tablename__ = "working_hours"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(
        UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)

    # Schedule details
    weekday = Column(String(20), nullable=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    staff = relationship("Staff", back_populates="working_hours")

    __table_args__ = (
        Index("ix_working_hours_staff_weekday", "staff_id", "weekday"),
        CheckConstraint("end_time > start_time", name="check_working_hours_order"),
    )

    def window_on(self, day: date, tz: tzinfo) -> tuple[datetime, datetime]:
        """Return the aware start/end instants of this window on ``day``."""
        return working_window(day, self.start_time, self.end_time, tz)

    def __repr__(self):
        weekday_str = self.weekday or "DAILY"
        return (
            f"<WorkingHours(id={self.id}, staff_id={self.staff_id}, "
            f"{weekday_str}: {self.start_time}-{self.end_time}, "
            f"active={self.is_active})>"
        )


def working_window(
    day: date, start: time, end: time, tz: tzinfo
) -> tuple[datetime, datetime]:
    return (
        datetime.combine(day, start, tzinfo=tz),
        datetime.combine(day, end, tzinfo=tz),
    )


def weekday_name(day: date) -> str:
    return WeekDay(day.weekday()).name


def resolve_working_hours(
    rows: list[WorkingHours], day: date
) -> tuple[Optional[WorkingHours], bool]:
    """Pick the row governing ``day``.

    Returns ``(row, is_day_off)``. ``row`` is None when nothing is configured
    and the caller should fall back to the default window.
    """
    name = weekday_name(day)
    for row in rows:
        if row.weekday == name:
            return (row, False) if row.is_active else (row, True)
    for row in rows:
        if row.weekday is None and row.is_active:
            return row, False
    return None, False
