from datetime import date as date_type, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from salon_booking.api.deps.services import get_appointment_service
from salon_booking.models.appointment import AppointmentStatus
from salon_booking.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentListData,
    AppointmentListResponse,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
)
from salon_booking.schemas.base import ErrorResponse
from salon_booking.schemas.scheduling import (
    AvailableSlotsData,
    AvailableSlotsResponse,
    ConflictCheckRequest,
    ConflictCheckResponse,
)
from salon_booking.services.appointment import AppointmentService

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_appointment(
    appointment_data: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment; 409 when the staff member is busy for any part of it."""
    appointment = await service.create_appointment(appointment_data)
    return AppointmentResponse.wrap(appointment)


@router.get(
    "/available-slots",
    response_model=AvailableSlotsResponse,
    responses=ERROR_RESPONSES,
)
async def get_available_slots(
    staff_id: int = Query(..., alias="staffId", description="Staff member ID"),
    date: date_type = Query(..., description="Calendar day in the salon timezone"),
    service_ids: List[int] = Query(
        ..., alias="serviceIds", description="Requested service IDs"
    ),
    service: AppointmentService = Depends(get_appointment_service),
):
    """
    Get bookable start times for a staff member on a day.

    Candidates are spaced by the slot granularity inside the staff member's
    working hours and must fit the combined duration of the requested
    services without overlapping an active appointment. An empty list means
    the day is fully booked.
    """
    slots, total_duration = await service.get_available_slots(
        staff_id, date, service_ids
    )
    return AvailableSlotsResponse(
        data=AvailableSlotsData(
            staff_id=staff_id,
            date=date,
            total_duration_minutes=total_duration,
            available_slots=slots,
        )
    )


@router.post(
    "/check-conflict",
    response_model=ConflictCheckResponse,
    responses=ERROR_RESPONSES,
)
async def check_conflict(
    request: ConflictCheckRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Check whether a staff member is free over an interval."""
    available = await service.is_available(
        request.staff_id,
        request.start_time,
        request.end_time,
        request.exclude_appointment_id,
    )
    return ConflictCheckResponse(available=available)


@router.get(
    "/user/{user_id}",
    response_model=AppointmentListResponse,
    responses=ERROR_RESPONSES,
)
async def get_user_appointments(
    user_id: int,
    status: Optional[AppointmentStatus] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Get appointments where the user is the customer or the staff member."""
    appointments = await service.list_user_appointments(
        user_id, status=status, start_date=start_date, end_date=end_date
    )
    return AppointmentListResponse(
        data=AppointmentListData(
            appointments=[AppointmentRead.from_model(a) for a in appointments]
        )
    )


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    responses=ERROR_RESPONSES,
)
async def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.get_appointment(appointment_id)
    return AppointmentResponse.wrap(appointment)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    responses=ERROR_RESPONSES,
)
async def update_appointment_status(
    appointment_id: int,
    update: AppointmentStatusUpdate,
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.update_status(appointment_id, update.status)
    return AppointmentResponse.wrap(appointment)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    responses=ERROR_RESPONSES,
)
async def cancel_appointment(
    appointment_id: int,
    cancel: Optional[AppointmentCancel] = None,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel an appointment. The record is kept and its time is released."""
    reason = cancel.reason if cancel else None
    appointment = await service.cancel_appointment(appointment_id, reason)
    return AppointmentResponse.wrap(appointment)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    responses=ERROR_RESPONSES,
)
async def reschedule_appointment(
    appointment_id: int,
    reschedule: AppointmentReschedule,
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.reschedule_appointment(
        appointment_id, reschedule.start_time
    )
    return AppointmentResponse.wrap(appointment)
