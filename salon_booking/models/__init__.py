# Import all models to ensure they are registered with SQLAlchemy
from . import (
    appointment,
    customer,
    service,
    staff,
    working_hours,
)

__all__ = [
    "appointment",
    "customer",
    "service",
    "staff",
    "working_hours",
]
