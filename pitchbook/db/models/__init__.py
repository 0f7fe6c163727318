from .user import User, UserRole
from .pitch import Pitch
from .blocked_slot import BlockedSlot
from .booking import Booking, BookingStatus, ACTIVE_STATUSES
