import datetime as dt
from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class BlockedSlot(Base):
    __tablename__ = "blocked_slots"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_blocked_slot_window"),
        Index("ix_blocked_slots_pitch_date", "pitch_id", "date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    pitch_id: Mapped[int] = mapped_column(ForeignKey("pitches.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255))

    pitch = relationship("Pitch", back_populates="blocked_slots")
