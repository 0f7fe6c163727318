"""Common application-wide constants."""

from datetime import time

# Every booking covers exactly one slot of this length; slot starts sit on
# the same grid, counted from midnight
SLOT_MINUTES = 60

# Opening hours used when a pitch does not define its own
DEFAULT_OPEN_TIME = time(8, 0)
DEFAULT_CLOSE_TIME = time(22, 0)

# Name of the partial unique index guarding active bookings
ACTIVE_SLOT_INDEX = "uq_bookings_active_slot"

HOLD_EXPIRED_REASON = "hold_expired"


__all__ = [
    "SLOT_MINUTES",
    "DEFAULT_OPEN_TIME",
    "DEFAULT_CLOSE_TIME",
    "ACTIVE_SLOT_INDEX",
    "HOLD_EXPIRED_REASON",
]
