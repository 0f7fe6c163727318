from datetime import date, datetime, time, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.constants import SLOT_MINUTES
from ..core.regions import validate_region
from ..db import models, schemas
from ..db.models.booking import ACTIVE_STATUSES
from .booking_service import PitchNotFound, as_utc, slot_is_held, slot_start, storage_errors


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def list_pitches(db: Session, city: str | None = None, indoor: bool | None = None) -> list[models.Pitch]:
    stmt = select(models.Pitch)
    city = validate_region(city)
    if city:
        stmt = stmt.where(models.Pitch.city == city)
    if indoor is not None:
        stmt = stmt.where(models.Pitch.indoor == indoor)
    with storage_errors(db, "list_pitches"):
        return list(db.execute(stmt.order_by(models.Pitch.name, models.Pitch.id)).scalars().all())


def get_pitch(db: Session, pitch_id: int) -> models.Pitch:
    with storage_errors(db, "get_pitch"):
        pitch = db.get(models.Pitch, pitch_id)
    if pitch is None:
        raise PitchNotFound("Pitch not found")
    return pitch


def create_pitch(db: Session, payload: schemas.PitchCreate) -> models.Pitch:
    pitch = models.Pitch(**payload.model_dump())
    with storage_errors(db, "create_pitch"):
        db.add(pitch)
        db.commit()
        db.refresh(pitch)
    return pitch


def block_slot(db: Session, pitch: models.Pitch, payload: schemas.BlockedSlotCreate) -> models.BlockedSlot:
    blocked = models.BlockedSlot(pitch_id=pitch.id, **payload.model_dump())
    with storage_errors(db, "block_slot"):
        db.add(blocked)
        db.commit()
        db.refresh(blocked)
    return blocked


def get_available_start_times(
    db: Session,
    pitch: models.Pitch,
    day: date,
    *,
    now: datetime | None = None,
) -> list[time]:
    now = as_utc(now or _utc_now())
    with storage_errors(db, "get_available_start_times"):
        bookings = db.execute(
            select(models.Booking).where(
                models.Booking.pitch_id == pitch.id,
                models.Booking.date == day,
                models.Booking.status.in_(ACTIVE_STATUSES),
            )
        ).scalars().all()
        blocked_slots = db.execute(
            select(models.BlockedSlot).where(
                models.BlockedSlot.pitch_id == pitch.id,
                models.BlockedSlot.date == day,
            )
        ).scalars().all()
    taken = {booking.start_time for booking in bookings if slot_is_held(booking, now)}
    blocked = [(_minutes(item.start_time), _minutes(item.end_time)) for item in blocked_slots]

    # first grid-aligned start at or after opening
    first = -(-_minutes(pitch.open_time) // SLOT_MINUTES) * SLOT_MINUTES
    available: list[time] = []
    for start in range(first, _minutes(pitch.close_time) - SLOT_MINUTES + 1, SLOT_MINUTES):
        candidate = time(*divmod(start, 60))
        if candidate in taken:
            continue
        if any(block_start < start + SLOT_MINUTES and start < block_end for block_start, block_end in blocked):
            continue
        if slot_start(day, candidate) <= now:
            continue
        available.append(candidate)
    return available
