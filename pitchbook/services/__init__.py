from . import (
    admin,
    booking_service,
    pitch_service,
)
__all__ = [
    "admin",
    "booking_service",
    "pitch_service",
]
