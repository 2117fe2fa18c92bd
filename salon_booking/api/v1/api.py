from fastapi import APIRouter

from salon_booking.api.v1.endpoints import appointments

api_router = APIRouter()

# Appointment booking and slot availability endpoints
api_router.include_router(
    appointments.router, prefix="/appointments", tags=["appointments"]
)
