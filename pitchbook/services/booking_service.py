from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
import logging
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.constants import ACTIVE_SLOT_INDEX, HOLD_EXPIRED_REASON, SLOT_MINUTES
from ..db import models
from ..db.models.booking import ACTIVE_STATUSES, BookingStatus

logger = logging.getLogger(__name__)


class BookingError(Exception):
    pass


class SlotConflict(BookingError):
    pass


class BookingNotFound(BookingError):
    pass


class PitchNotFound(BookingError):
    pass


class InvalidBookingState(BookingError):
    pass


class BookingValidationError(BookingError):
    pass


class StorageUnavailable(BookingError):
    """The store could not be reached; the call is safe to retry."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def slot_start(day: date, start_time: time) -> datetime:
    """Wall-clock start of a slot in the configured local timezone."""
    return datetime.combine(day, start_time.replace(tzinfo=None), tzinfo=ZoneInfo(get_settings().timezone))


def hold_duration() -> timedelta:
    return timedelta(minutes=get_settings().booking_hold_min)


@contextmanager
def storage_errors(db: Session, action: str):
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        db.rollback()
        logger.warning("Storage unavailable", extra={"action": action, "error": str(exc)})
        raise StorageUnavailable("Storage is temporarily unavailable, retry later") from exc


def _is_active_slot_violation(exc: IntegrityError) -> bool:
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", None)
    if constraint:
        return constraint == ACTIVE_SLOT_INDEX
    message = str(exc.orig)
    return ACTIVE_SLOT_INDEX in message or "UNIQUE constraint failed: bookings." in message


def _validate_slot(db: Session, pitch: models.Pitch, day: date, start_time: time, now: datetime) -> None:
    if start_time.second or start_time.microsecond or _minute_of_day(start_time) % SLOT_MINUTES:
        raise BookingValidationError(f"Start time must be aligned to {SLOT_MINUTES}-minute slots")
    start = _minute_of_day(start_time)
    if start < _minute_of_day(pitch.open_time) or start + SLOT_MINUTES > _minute_of_day(pitch.close_time):
        raise BookingValidationError("Requested slot is outside opening hours")
    if slot_start(day, start_time) <= now:
        raise BookingValidationError("Slot start time is in the past")
    # close_time is a wall-clock time, so the slot end never reaches midnight
    slot_end = time(*divmod(start + SLOT_MINUTES, 60))
    blocked = db.scalar(
        select(models.BlockedSlot.id)
        .where(
            models.BlockedSlot.pitch_id == pitch.id,
            models.BlockedSlot.date == day,
            models.BlockedSlot.start_time < slot_end,
            models.BlockedSlot.end_time > start_time,
        )
        .limit(1)
    )
    if blocked is not None:
        raise BookingValidationError("Requested slot is blocked")


def _expire_holds(db: Session, now: datetime, *criteria) -> int:
    stmt = (
        update(models.Booking)
        .where(
            models.Booking.status == BookingStatus.PENDING,
            models.Booking.hold_expires_at < now,
            *criteria,
        )
        .values(status=BookingStatus.EXPIRED, updated_at=now, cancel_reason=HOLD_EXPIRED_REASON)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount


def reserve(
    db: Session,
    pitch_id: int,
    day: date,
    start_time: time,
    user_id: int,
    *,
    now: datetime | None = None,
) -> models.Booking:
    now = as_utc(now or _utc_now())
    if start_time.tzinfo is not None:
        raise BookingValidationError("Start time must be a local wall-clock time without an offset")
    with storage_errors(db, "reserve"):
        pitch = db.get(models.Pitch, pitch_id)
        if pitch is None:
            raise PitchNotFound("Pitch not found")
        _validate_slot(db, pitch, day, start_time, now)
        try:
            # A lapsed hold on this slot must not block the new request
            _expire_holds(
                db,
                now,
                models.Booking.pitch_id == pitch_id,
                models.Booking.date == day,
                models.Booking.start_time == start_time,
            )
            booking = models.Booking(
                user_id=user_id,
                pitch_id=pitch_id,
                date=day,
                start_time=start_time,
                status=BookingStatus.PENDING,
                hold_expires_at=now + hold_duration(),
                created_at=now,
                updated_at=now,
            )
            db.add(booking)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if not _is_active_slot_violation(exc):
                raise
            logger.info(
                "Slot already booked",
                extra={"pitch_id": pitch_id, "date": day.isoformat(), "start_time": start_time.isoformat(), "user_id": user_id},
            )
            raise SlotConflict("This time slot is already booked") from exc
    logger.info(
        "Booking created",
        extra={"booking_id": booking.id, "pitch_id": pitch_id, "user_id": user_id},
    )
    return booking


def _transition(
    db: Session,
    booking_id: int,
    from_statuses: tuple[BookingStatus, ...],
    values: dict,
    *criteria,
) -> models.Booking | None:
    stmt = (
        update(models.Booking)
        .where(
            models.Booking.id == booking_id,
            models.Booking.status.in_(from_statuses),
            *criteria,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        return None
    db.commit()
    return db.get(models.Booking, booking_id, populate_existing=True)


def confirm(db: Session, booking_id: int, *, now: datetime | None = None) -> models.Booking:
    now = as_utc(now or _utc_now())
    with storage_errors(db, "confirm"):
        booking = _transition(
            db,
            booking_id,
            (BookingStatus.PENDING,),
            {"status": BookingStatus.CONFIRMED, "confirmed_at": now, "updated_at": now},
            models.Booking.hold_expires_at >= now,
        )
        if booking is not None:
            logger.info("Booking confirmed", extra={"booking_id": booking_id})
            return booking
        db.rollback()
        current = db.get(models.Booking, booking_id, populate_existing=True)
        if current is None:
            raise BookingNotFound("Booking not found")
        if current.status == BookingStatus.PENDING:
            expired = _expire_holds(db, now, models.Booking.id == booking_id)
            db.commit()
            if expired:
                logger.info("Booking hold expired on confirm", extra={"booking_id": booking_id})
                raise InvalidBookingState("Booking hold has expired")
            # Lost a race with a concurrent transition; report what we see now
            current = db.get(models.Booking, booking_id, populate_existing=True)
        raise InvalidBookingState(f"Cannot confirm a booking in status {current.status.value}")


def cancel(
    db: Session,
    booking_id: int,
    *,
    reason: str | None = None,
    now: datetime | None = None,
) -> models.Booking:
    now = as_utc(now or _utc_now())
    with storage_errors(db, "cancel"):
        booking = _transition(
            db,
            booking_id,
            ACTIVE_STATUSES,
            {
                "status": BookingStatus.CANCELLED,
                "cancelled_at": now,
                "cancel_reason": reason,
                "updated_at": now,
            },
        )
        if booking is not None:
            logger.info("Booking cancelled", extra={"booking_id": booking_id, "reason": reason})
            return booking
        db.rollback()
        current = db.get(models.Booking, booking_id, populate_existing=True)
        if current is None:
            raise BookingNotFound("Booking not found")
        raise InvalidBookingState(f"Cannot cancel a booking in status {current.status.value}")


def expire_stale(db: Session, now: datetime | None = None) -> int:
    now = as_utc(now or _utc_now())
    with storage_errors(db, "expire_stale"):
        count = _expire_holds(db, now)
        db.commit()
    if count:
        logger.info("Expired stale bookings", extra={"count": count})
    return count


def get_booking(db: Session, booking_id: int) -> models.Booking:
    with storage_errors(db, "get_booking"):
        booking = db.get(models.Booking, booking_id)
    if booking is None:
        raise BookingNotFound("Booking not found")
    return booking


def list_user_bookings(
    db: Session, user_id: int, status: BookingStatus | None = None
) -> list[models.Booking]:
    stmt = select(models.Booking).where(models.Booking.user_id == user_id)
    if status:
        stmt = stmt.where(models.Booking.status == status)
    stmt = stmt.order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
    with storage_errors(db, "list_user_bookings"):
        return list(db.execute(stmt).scalars().all())


def list_bookings(
    db: Session,
    pitch_id: int | None = None,
    day: date | None = None,
    status: BookingStatus | None = None,
    limit: int = 200,
) -> list[models.Booking]:
    stmt = select(models.Booking)
    if pitch_id:
        stmt = stmt.where(models.Booking.pitch_id == pitch_id)
    if day:
        stmt = stmt.where(models.Booking.date == day)
    if status:
        stmt = stmt.where(models.Booking.status == status)
    stmt = stmt.order_by(models.Booking.date, models.Booking.start_time, models.Booking.id).limit(limit)
    with storage_errors(db, "list_bookings"):
        return list(db.execute(stmt).scalars().all())


def slot_is_held(booking: models.Booking, now: datetime) -> bool:
    """Whether ``booking`` still occupies its slot at ``now``.

    A hold is live up to and including ``hold_expires_at``; only a later
    ``now`` lets it lapse, matching :func:`expire_stale`.
    """
    if booking.status == BookingStatus.CONFIRMED:
        return True
    return booking.status == BookingStatus.PENDING and as_utc(booking.hold_expires_at) >= as_utc(now)
