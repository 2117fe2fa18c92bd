from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.core.database import get_db
from salon_booking.repositories.appointment import AppointmentRepository
from salon_booking.services.appointment import AppointmentService


async def get_appointment_repository(
    db: AsyncSession = Depends(get_db),
) -> AppointmentRepository:
    return AppointmentRepository(db)


async def get_appointment_service(
    repository: AppointmentRepository = Depends(get_appointment_repository),
) -> AppointmentService:
    """Dependency to get the booking service bound to the request's session."""
    return AppointmentService(repository)
