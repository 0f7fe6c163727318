from datetime import datetime, time
from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Text, Time, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ...core.constants import DEFAULT_CLOSE_TIME, DEFAULT_OPEN_TIME
from ..session import Base


class Pitch(Base):
    __tablename__ = "pitches"
    __table_args__ = (
        CheckConstraint("price_per_hour >= 0", name="ck_pitch_price_non_negative"),
        CheckConstraint("open_time < close_time", name="ck_pitch_hours_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    indoor: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price_per_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    open_time: Mapped[time] = mapped_column(Time, default=DEFAULT_OPEN_TIME, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, default=DEFAULT_CLOSE_TIME, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    bookings = relationship("Booking", back_populates="pitch")
    blocked_slots = relationship("BlockedSlot", back_populates="pitch", cascade="all, delete-orphan")
