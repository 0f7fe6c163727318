from datetime import date, datetime, time
from pydantic import BaseModel, Field, field_validator

from ..models.booking import BookingStatus


def reject_offset(value: time) -> time:
    # slot times are wall-clock times in the configured timezone
    if value.tzinfo is not None:
        raise ValueError("time must not carry a UTC offset")
    return value


class BookingCreate(BaseModel):
    pitch_id: int
    date: date
    start_time: time

    @field_validator("start_time")
    @classmethod
    def _check_start_time(cls, value: time) -> time:
        return reject_offset(value)


class BookingCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=255)


class Booking(BaseModel):
    id: int
    user_id: int
    pitch_id: int
    date: date
    start_time: time
    status: BookingStatus
    hold_expires_at: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None

    class Config:
        from_attributes = True


class ExpireResult(BaseModel):
    expired: int
