from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from ...api import deps
from ...core.regions import RegionValidationError
from ...db.session import get_db
from ...db import models, schemas
from ...services import booking_service, pitch_service

router = APIRouter(prefix="/pitches", tags=["pitches"])


def _load_pitch(db: Session, pitch_id: int) -> models.Pitch:
    try:
        return pitch_service.get_pitch(db, pitch_id)
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc


@router.get("", response_model=list[schemas.Pitch])
def list_pitches(
    city: str | None = None,
    indoor: bool | None = None,
    db: Session = Depends(get_db),
):
    try:
        return pitch_service.list_pitches(db, city=city, indoor=indoor)
    except RegionValidationError as exc:
        raise deps.http_error(
            status.HTTP_400_BAD_REQUEST, str(exc), "VALIDATION_ERROR", accepted=exc.accepted
        ) from exc
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc


@router.post("", response_model=schemas.Pitch, status_code=status.HTTP_201_CREATED)
def create_pitch(
    payload: schemas.PitchCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    try:
        return pitch_service.create_pitch(db, payload)
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc


@router.get("/{pitch_id}", response_model=schemas.Pitch)
def get_pitch(pitch_id: int, db: Session = Depends(get_db)):
    return _load_pitch(db, pitch_id)


@router.get("/{pitch_id}/availability", response_model=schemas.Availability)
def get_availability(
    pitch_id: int,
    date: date,
    db: Session = Depends(get_db),
):
    pitch = _load_pitch(db, pitch_id)
    try:
        slots = pitch_service.get_available_start_times(db, pitch, date)
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc
    return schemas.Availability(
        pitch_id=pitch.id,
        date=date,
        available_slots=[slot.strftime("%H:%M") for slot in slots],
    )


@router.post(
    "/{pitch_id}/blocked-slots",
    response_model=schemas.BlockedSlot,
    status_code=status.HTTP_201_CREATED,
)
def create_blocked_slot(
    pitch_id: int,
    payload: schemas.BlockedSlotCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    pitch = _load_pitch(db, pitch_id)
    try:
        return pitch_service.block_slot(db, pitch, payload)
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc
