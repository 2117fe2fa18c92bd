"""Appointment persistence for the booking core."""
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salon_booking.core.exceptions import ConflictError, TransientStoreError
from salon_booking.models.appointment import (
    INACTIVE_STATUS_VALUES,
    Appointment,
    AppointmentReminder,
    AppointmentStatus,
)
from salon_booking.models.customer import Customer
from salon_booking.models.service import Service
from salon_booking.models.staff import Staff
from salon_booking.models.working_hours import WorkingHours

logger = structlog.get_logger(__name__)


class AppointmentRepository:
    """SQLAlchemy-backed store for appointments and the records they reference.

    Every driver failure is re-raised as ``TransientStoreError``; retries are
    left to the caller.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _scalars(self, stmt) -> list:
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Appointment store read failed", exc_info=e)
            raise TransientStoreError("Appointment store unavailable") from e
        return list(result.unique().scalars().all())

    async def _scalar(self, stmt):
        rows = await self._scalars(stmt)
        return rows[0] if rows else None

    @staticmethod
    def _with_children(stmt):
        return stmt.options(
            selectinload(Appointment.line_items),
            selectinload(Appointment.reminders),
        )

    # Reference data

    async def get_staff(self, staff_id: int) -> Optional[Staff]:
        return await self._scalar(select(Staff).where(Staff.id == staff_id))

    async def get_customer(self, customer_id: int) -> Optional[Customer]:
        return await self._scalar(select(Customer).where(Customer.id == customer_id))

    async def get_services(self, service_ids: list[int]) -> list[Service]:
        if not service_ids:
            return []
        return await self._scalars(
            select(Service).where(Service.id.in_(service_ids), Service.is_active)
        )

    async def get_staff_working_hours(self, staff_id: int) -> list[WorkingHours]:
        return await self._scalars(
            select(WorkingHours).where(WorkingHours.staff_id == staff_id)
        )

    # Appointments

    async def find_active_appointments(
        self,
        staff_id: int,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> list[Appointment]:
        """Active appointments of a staff member overlapping the optional window."""
        query = select(Appointment).where(
            Appointment.staff_id == staff_id,
            Appointment.status.not_in(INACTIVE_STATUS_VALUES),
        )
        if window_end is not None:
            query = query.where(Appointment.start_time < window_end)
        if window_start is not None:
            query = query.where(Appointment.end_time > window_start)

        return await self._scalars(query.order_by(Appointment.start_time.asc()))

    async def get_appointment(self, appointment_id: int) -> Optional[Appointment]:
        query = self._with_children(
            select(Appointment).where(Appointment.id == appointment_id)
        )
        return await self._scalar(query)

    async def list_user_appointments(
        self,
        user_id: int,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[Appointment]:
        query = self._with_children(
            select(Appointment).where(
                or_(Appointment.customer_id == user_id, Appointment.staff_id == user_id)
            )
        )
        if status:
            query = query.where(Appointment.status == status.value)
        if start_date and end_date:
            query = query.where(
                and_(
                    Appointment.start_time >= start_date,
                    Appointment.start_time <= end_date,
                )
            )
        return await self._scalars(query.order_by(Appointment.start_time.asc()))

    async def find_due_reminders(self, now: datetime) -> list[AppointmentReminder]:
        query = (
            select(AppointmentReminder)
            .join(Appointment, AppointmentReminder.appointment_id == Appointment.id)
            .options(selectinload(AppointmentReminder.appointment))
            .where(
                AppointmentReminder.sent.is_(False),
                AppointmentReminder.scheduled_for <= now,
                Appointment.status.in_(
                    [AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value]
                ),
            )
            .order_by(AppointmentReminder.scheduled_for.asc())
        )
        return await self._scalars(query)

    # Writes

    async def lock_staff_calendar(self, staff_id: int) -> None:
        """Take a transaction-scoped advisory lock on the staff member's calendar.

        Held until the surrounding transaction commits or rolls back, so the
        overlap read and the insert that follows it are serialised per staff.
        """
        try:
            await self.db.execute(select(func.pg_advisory_xact_lock(staff_id)))
        except SQLAlchemyError as e:
            logger.error("Calendar lock failed", staff_id=staff_id, exc_info=e)
            raise TransientStoreError("Appointment store unavailable") from e

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        await self._flush()
        return appointment

    async def save_appointment(self, appointment: Appointment) -> Appointment:
        await self._flush()
        return appointment

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("Appointment violates a calendar constraint") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Appointment store commit failed", exc_info=e)
            raise TransientStoreError("Appointment store unavailable") from e

    async def rollback(self) -> None:
        await self.db.rollback()

    async def _flush(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("Appointment violates a calendar constraint") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Appointment store write failed", exc_info=e)
            raise TransientStoreError("Appointment store unavailable") from e
