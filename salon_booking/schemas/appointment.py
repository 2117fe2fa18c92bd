from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import Field, model_validator

from salon_booking.models.appointment import (
    Appointment as AppointmentModel,
    AppointmentStatus,
    PaymentMethod,
    PaymentStatus,
)
from salon_booking.schemas.base import CamelModel


# Request schemas
class ServiceLineItemCreate(CamelModel):
    service: int
    duration: Optional[int] = Field(None, gt=0)  # Falls back to catalog duration
    price: Optional[Decimal] = Field(None, ge=0)  # Falls back to catalog price


class GroupBooking(CamelModel):
    is_group: bool = False
    group_id: Optional[str] = Field(None, max_length=64)
    group_size: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def validate_group_size(self):
        if self.is_group and not self.group_size:
            raise ValueError("Group size is required for group bookings")
        return self


class AppointmentCreate(CamelModel):
    customer: int
    staff: int
    services: List[ServiceLineItemCreate] = Field(..., min_length=1)
    start_time: datetime
    notes: Optional[str] = None
    group_booking: Optional[GroupBooking] = None
    payment_method: PaymentMethod = PaymentMethod.CASH


class AppointmentStatusUpdate(CamelModel):
    status: AppointmentStatus


class AppointmentCancel(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)


class AppointmentReschedule(CamelModel):
    start_time: datetime


# Response schemas
class LineItemRead(CamelModel):
    service: int
    duration: int
    price: Decimal


class PaymentRead(CamelModel):
    status: PaymentStatus
    amount: Decimal
    method: PaymentMethod
    transaction_id: Optional[str] = None


class ReminderRead(CamelModel):
    type: str
    scheduled_for: datetime
    sent: bool


class AppointmentRead(CamelModel):
    id: int
    uuid: Optional[UUID] = None
    customer: int
    staff: int
    services: List[LineItemRead]
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    payment: PaymentRead
    notes: Optional[str] = None
    reminders: List[ReminderRead] = Field(default_factory=list)
    group_booking: GroupBooking
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, appointment: AppointmentModel) -> "AppointmentRead":
        return cls(
            id=appointment.id,
            uuid=appointment.uuid,
            customer=appointment.customer_id,
            staff=appointment.staff_id,
            services=[
                LineItemRead(
                    service=item.service_id,
                    duration=item.duration_minutes,
                    price=item.price,
                )
                for item in appointment.line_items
            ],
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            status=AppointmentStatus(appointment.status),
            payment=PaymentRead(
                status=PaymentStatus(appointment.payment_status),
                amount=appointment.payment_amount,
                method=PaymentMethod(appointment.payment_method),
                transaction_id=appointment.payment_transaction_id,
            ),
            notes=appointment.notes,
            reminders=[
                ReminderRead(
                    type=reminder.channel,
                    scheduled_for=reminder.scheduled_for,
                    sent=bool(reminder.sent),
                )
                for reminder in appointment.reminders
            ],
            group_booking=GroupBooking(
                is_group=bool(appointment.is_group),
                group_id=appointment.group_id,
                group_size=appointment.group_size,
            ),
            created_at=appointment.created_at,
        )


class AppointmentData(CamelModel):
    appointment: AppointmentRead


class AppointmentResponse(CamelModel):
    status: str = "success"
    data: AppointmentData

    @classmethod
    def wrap(cls, appointment: AppointmentModel) -> "AppointmentResponse":
        return cls(data=AppointmentData(appointment=AppointmentRead.from_model(appointment)))


class AppointmentListData(CamelModel):
    appointments: List[AppointmentRead]


class AppointmentListResponse(CamelModel):
    status: str = "success"
    data: AppointmentListData
