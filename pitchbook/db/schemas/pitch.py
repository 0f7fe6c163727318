from datetime import date, time
from pydantic import BaseModel, Field, field_validator, model_validator

from ...core.constants import DEFAULT_CLOSE_TIME, DEFAULT_OPEN_TIME
from ...core.regions import RegionValidationError, validate_region
from .booking import reject_offset


class PitchBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    city: str
    address: str = Field(min_length=1)
    indoor: bool = False
    description: str | None = None
    price_per_hour: int = Field(ge=0)
    open_time: time = DEFAULT_OPEN_TIME
    close_time: time = DEFAULT_CLOSE_TIME


class PitchCreate(PitchBase):
    @field_validator("city")
    @classmethod
    def _check_city(cls, value: str) -> str:
        code = validate_region(value)
        if code is None:
            raise RegionValidationError(value)
        return code

    @model_validator(mode="after")
    def _check_hours(self) -> "PitchCreate":
        if self.open_time >= self.close_time:
            raise ValueError("open_time must be before close_time")
        return self


class Pitch(PitchBase):
    id: int

    class Config:
        from_attributes = True


class BlockedSlotCreate(BaseModel):
    date: date
    start_time: time
    end_time: time
    reason: str | None = Field(default=None, max_length=255)

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_naive(cls, value: time) -> time:
        return reject_offset(value)

    @model_validator(mode="after")
    def _check_window(self) -> "BlockedSlotCreate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class BlockedSlot(BlockedSlotCreate):
    id: int
    pitch_id: int

    class Config:
        from_attributes = True


class Availability(BaseModel):
    pitch_id: int
    date: date
    available_slots: list[str]
