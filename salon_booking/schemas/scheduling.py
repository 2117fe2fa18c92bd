from datetime import date as date_type, datetime
from typing import List, Optional

from pydantic import model_validator

from salon_booking.schemas.base import CamelModel


class AvailableSlotsData(CamelModel):
    staff_id: int
    date: date_type
    total_duration_minutes: int
    available_slots: List[datetime]


class AvailableSlotsResponse(CamelModel):
    status: str = "success"
    data: AvailableSlotsData


class ConflictCheckRequest(CamelModel):
    staff_id: int
    start_time: datetime
    end_time: datetime
    exclude_appointment_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_interval(self):
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class ConflictCheckResponse(CamelModel):
    status: str = "success"
    available: bool
