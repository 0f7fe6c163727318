from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from ...core.regions import validate_region
from ..models.user import UserRole


class UserBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    username: str = Field(min_length=3, max_length=100)
    email: str = Field(max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str | None = Field(default=None, max_length=20)
    city: str | None = None

    @field_validator("city")
    @classmethod
    def _check_city(cls, value: str | None) -> str | None:
        return validate_region(value)


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class User(UserBase):
    id: int
    role: UserRole
    is_active: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True
