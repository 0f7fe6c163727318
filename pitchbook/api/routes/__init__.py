from . import (
    auth,
    pitches,
    bookings,
    misc,
)

__all__ = [
    "auth",
    "pitches",
    "bookings",
    "misc",
]
