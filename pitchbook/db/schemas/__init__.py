from .user import User, UserCreate
from .auth import AuthResponse, RefreshRequest
from .pitch import Availability, BlockedSlot, BlockedSlotCreate, Pitch, PitchCreate
from .booking import Booking, BookingCancel, BookingCreate, ExpireResult
