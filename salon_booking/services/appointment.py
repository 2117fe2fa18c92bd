from contextlib import asynccontextmanager
from datetime import date as date_type, datetime, timezone, tzinfo
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

import structlog

from salon_booking.core.config import settings
from salon_booking.core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from salon_booking.core.locks import get_staff_locks
from salon_booking.models.appointment import (
    INACTIVE_STATUSES,
    Appointment,
    AppointmentLineItem,
    AppointmentStatus,
    PaymentStatus,
)
from salon_booking.models.service import Service
from salon_booking.schemas.appointment import AppointmentCreate
from salon_booking.services.availability import AvailabilityEngine
from salon_booking.services.conflicts import ConflictGuard, find_conflicts
from salon_booking.services.notifications import (
    DEFAULT_CHANNELS,
    CeleryNotificationDispatcher,
    NotificationDispatcher,
    NotificationType,
)
from salon_booking.services.reminders import schedule_reminders
from salon_booking.utils.intervals import TimeInterval

logger = structlog.get_logger(__name__)


class AppointmentService:
    """Booking workflow: conflict-free creation, status changes and reminders.

    Every write that can take up a staff member's time runs inside the staff
    calendar lock, so the overlap check and the write it guards cannot
    interleave with another booking for the same staff member.
    """

    def __init__(
        self,
        repository,
        locks=None,
        notifier: Optional[NotificationDispatcher] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.repository = repository
        self.locks = locks or get_staff_locks()
        self.notifier = notifier or CeleryNotificationDispatcher()
        self.tz = tz or ZoneInfo(settings.SALON_TIMEZONE)
        self.conflict_guard = ConflictGuard(repository)
        self.availability_engine = AvailabilityEngine(repository, tz=self.tz)

    async def create_appointment(
        self, appointment_data: AppointmentCreate, now: Optional[datetime] = None
    ) -> Appointment:
        """Book an appointment if the staff member is free for its whole duration."""
        staff = await self.repository.get_staff(appointment_data.staff)
        if not staff or not staff.can_take_bookings:
            raise NotFoundError(
                f"Staff {appointment_data.staff} not found",
                staff_id=appointment_data.staff,
            )

        customer = await self.repository.get_customer(appointment_data.customer)
        if not customer:
            raise NotFoundError(
                f"Customer {appointment_data.customer} not found",
                customer_id=appointment_data.customer,
            )

        catalog = await self._get_catalog_services(
            [item.service for item in appointment_data.services]
        )

        line_items = []
        for position, item in enumerate(appointment_data.services):
            service = catalog[item.service]
            line_items.append(
                AppointmentLineItem(
                    service_id=service.id,
                    position=position,
                    duration_minutes=item.duration or service.duration_minutes,
                    price=item.price if item.price is not None else service.price,
                )
            )

        group = appointment_data.group_booking
        appointment = Appointment(
            customer_id=customer.id,
            staff_id=staff.id,
            start_time=self._as_aware(appointment_data.start_time),
            line_items=line_items,
            status=AppointmentStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=appointment_data.payment_method.value,
            notes=appointment_data.notes,
            is_group=bool(group and group.is_group),
            group_id=group.group_id if group else None,
            group_size=group.group_size if group else None,
            reminders=[],
        )
        appointment.payment_amount = appointment.total_price
        appointment.recalculate_end_time()

        async with self._calendar_transaction(staff.id):
            await self._ensure_free(staff.id, appointment.interval)
            schedule_reminders(appointment, now)
            await self.repository.create_appointment(appointment)

        logger.info(
            "Appointment booked",
            appointment_id=appointment.id,
            staff_id=staff.id,
            start=appointment.start_time.isoformat(),
            end=appointment.end_time.isoformat(),
            reminders=len(appointment.reminders),
        )

        await self._notify_customer(NotificationType.CONFIRMATION, appointment)
        return appointment

    async def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = await self.repository.get_appointment(appointment_id)
        if not appointment:
            raise NotFoundError(
                f"Appointment {appointment_id} not found",
                appointment_id=appointment_id,
            )
        return appointment

    async def update_status(
        self,
        appointment_id: int,
        new_status: AppointmentStatus,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """Move an appointment to a new status.

        Reactivating a cancelled appointment takes its time back, so it is
        re-checked against the calendar first.
        """
        appointment = await self.get_appointment(appointment_id)

        if appointment.status == new_status.value:
            return appointment

        if not appointment.can_transition_to(new_status):
            raise ValidationError(
                f"Cannot transition from {appointment.status} to {new_status.value}",
                appointment_id=appointment_id,
            )

        reactivating = not appointment.is_active and new_status not in INACTIVE_STATUSES

        if reactivating:
            async with self._calendar_transaction(appointment.staff_id):
                await self._ensure_free(
                    appointment.staff_id, appointment.interval, appointment.id
                )
                appointment.transition_to(new_status)
                schedule_reminders(appointment, now)
                await self.repository.save_appointment(appointment)
        else:
            appointment.transition_to(new_status)
            await self.repository.save_appointment(appointment)
            await self.repository.commit()

        logger.info(
            "Appointment status updated",
            appointment_id=appointment.id,
            status=appointment.status,
        )

        await self._notify_customer(NotificationType.STATUS_UPDATE, appointment)
        return appointment

    async def cancel_appointment(
        self, appointment_id: int, reason: Optional[str] = None
    ) -> Appointment:
        """Cancel an appointment, keeping the record and freeing its slot.

        Cancelling an already cancelled appointment changes nothing.
        """
        appointment = await self.get_appointment(appointment_id)

        if appointment.status == AppointmentStatus.CANCELLED.value:
            return appointment

        if not appointment.transition_to(AppointmentStatus.CANCELLED):
            raise ValidationError(
                f"Cannot cancel appointment in status {appointment.status}",
                appointment_id=appointment_id,
            )
        if reason:
            appointment.append_note(f"Cancellation reason: {reason}")

        await self.repository.save_appointment(appointment)
        await self.repository.commit()

        logger.info("Appointment cancelled", appointment_id=appointment.id)

        await self._notify_customer(NotificationType.CANCELLATION, appointment)
        return appointment

    async def reschedule_appointment(
        self,
        appointment_id: int,
        new_start: datetime,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """Move an active appointment to a new start time, keeping its services."""
        appointment = await self.get_appointment(appointment_id)
        if not appointment.is_active:
            raise ValidationError(
                "Cannot reschedule inactive appointment",
                appointment_id=appointment_id,
            )

        new_start = self._as_aware(new_start)
        candidate = TimeInterval.from_duration(
            new_start, appointment.total_duration_minutes
        )

        async with self._calendar_transaction(appointment.staff_id):
            await self._ensure_free(appointment.staff_id, candidate, appointment.id)
            appointment.reschedule(new_start)
            schedule_reminders(appointment, now)
            await self.repository.save_appointment(appointment)

        logger.info(
            "Appointment rescheduled",
            appointment_id=appointment.id,
            start=appointment.start_time.isoformat(),
        )

        await self._notify_customer(NotificationType.STATUS_UPDATE, appointment)
        return appointment

    async def list_user_appointments(
        self,
        user_id: int,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[Appointment]:
        return await self.repository.list_user_appointments(
            user_id,
            status=status,
            start_date=self._as_aware(start_date) if start_date else None,
            end_date=self._as_aware(end_date) if end_date else None,
        )

    async def is_available(
        self,
        staff_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        return await self.conflict_guard.is_available(
            staff_id, self._as_aware(start), self._as_aware(end), exclude_appointment_id
        )

    async def get_available_slots(
        self, staff_id: int, day: date_type, service_ids: Sequence[int]
    ) -> tuple[list[datetime], int]:
        """Free start times for the requested services, plus their total duration."""
        if not service_ids:
            raise ValidationError("At least one service is required")

        catalog = await self._get_catalog_services(service_ids)
        durations = [catalog[service_id].duration_minutes for service_id in service_ids]

        slots = await self.availability_engine.compute_available_slots(
            staff_id, day, durations
        )
        return slots, sum(durations)

    async def dispatch_due_reminders(self, now: Optional[datetime] = None) -> int:
        """Send every unsent reminder whose time has come and mark it sent."""
        now = now or datetime.now(timezone.utc)
        reminders = await self.repository.find_due_reminders(now)

        sent = skipped = 0
        for reminder in reminders:
            channels = await self._customer_channels(
                reminder.appointment, [reminder.channel]
            )
            if not channels:
                # Opted out of this channel; nothing will ever be sent for it
                reminder.mark_sent(now)
                skipped += 1
                continue
            if self._notify(NotificationType.REMINDER, reminder.appointment, channels):
                reminder.mark_sent(now)
                sent += 1

        if reminders:
            await self.repository.commit()

        logger.info(
            "Due reminders dispatched", due=len(reminders), sent=sent, skipped=skipped
        )
        return sent

    # Helper methods

    @asynccontextmanager
    async def _calendar_transaction(self, staff_id: int):
        """Hold the staff lock and commit the enclosed writes before releasing it."""
        async with self.locks.staff_calendar_lock(staff_id):
            await self.repository.lock_staff_calendar(staff_id)
            try:
                yield
                await self.repository.commit()
            except Exception:
                await self.repository.rollback()
                raise

    async def _ensure_free(
        self,
        staff_id: int,
        interval: TimeInterval,
        exclude_appointment_id: Optional[int] = None,
    ) -> None:
        appointments = await self.repository.find_active_appointments(
            staff_id, interval.start, interval.end
        )
        conflicts = find_conflicts(interval, appointments, exclude_appointment_id)
        if conflicts:
            logger.info(
                "Booking rejected, interval unavailable",
                staff_id=staff_id,
                start=interval.start.isoformat(),
                end=interval.end.isoformat(),
                conflicting_ids=[a.id for a in conflicts],
            )
            raise ConflictError(
                "The requested time is not available",
                staff_id=staff_id,
                start=interval.start.isoformat(),
                end=interval.end.isoformat(),
            )

    async def _get_catalog_services(self, service_ids: Sequence[int]) -> dict[int, Service]:
        unique_ids = list(dict.fromkeys(service_ids))
        services = await self.repository.get_services(unique_ids)
        catalog = {service.id: service for service in services}

        missing = [service_id for service_id in unique_ids if service_id not in catalog]
        if missing:
            raise NotFoundError(
                f"Services not found: {', '.join(str(s) for s in missing)}",
                service_ids=missing,
            )
        return catalog

    async def _customer_channels(
        self, appointment: Appointment, channels: Sequence[str]
    ) -> list[str]:
        """Keep the channels the appointment's customer accepts notifications on."""
        customer = await self.repository.get_customer(appointment.customer_id)
        if customer is None:
            return []
        return [channel for channel in channels if customer.wants(channel)]

    async def _notify_customer(
        self,
        notification_type: NotificationType,
        appointment: Appointment,
        channels: Sequence[str] = DEFAULT_CHANNELS,
    ) -> bool:
        try:
            channels = await self._customer_channels(appointment, channels)
        except Exception as e:
            logger.error(
                "Notification preferences unavailable",
                notification_type=notification_type.value,
                appointment_id=appointment.id,
                exc_info=e,
            )
            return False
        if not channels:
            logger.info(
                "Notification skipped, customer opted out",
                notification_type=notification_type.value,
                appointment_id=appointment.id,
            )
            return False
        return self._notify(notification_type, appointment, channels)

    def _notify(
        self,
        notification_type: NotificationType,
        appointment: Appointment,
        channels: Sequence[str] = DEFAULT_CHANNELS,
    ) -> bool:
        # The appointment change is already committed; a dispatch failure is
        # logged and never propagated.
        try:
            return self.notifier.dispatch(notification_type, appointment, channels)
        except Exception as e:
            logger.error(
                "Notification dispatch failed",
                notification_type=notification_type.value,
                appointment_id=appointment.id,
                exc_info=e,
            )
            return False

    def _as_aware(self, value: datetime) -> datetime:
        """Read naive datetimes as salon local time."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value
