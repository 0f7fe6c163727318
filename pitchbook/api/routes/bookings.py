from datetime import date

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...db.models.booking import BookingStatus
from ...services import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=schemas.Booking, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: schemas.BookingCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    try:
        return booking_service.reserve(
            db,
            payload.pitch_id,
            payload.date,
            payload.start_time,
            user.id,
        )
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc


@router.get("/me", response_model=list[schemas.Booking])
def my_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    try:
        return booking_service.list_user_bookings(db, user.id, status=status_filter)
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc


@router.get("", response_model=list[schemas.Booking])
def list_bookings(
    pitch_id: int | None = None,
    date: date | None = None,
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    try:
        return booking_service.list_bookings(db, pitch_id=pitch_id, day=date, status=status_filter)
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc


@router.post("/expire", response_model=schemas.ExpireResult)
def expire_bookings(
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    try:
        return schemas.ExpireResult(expired=booking_service.expire_stale(db))
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc


def _load_owned_booking(db: Session, booking_id: int, user: models.User) -> models.Booking:
    try:
        booking = booking_service.get_booking(db, booking_id)
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc
    if booking.user_id != user.id and not deps.is_admin(user):
        raise deps.http_error(status.HTTP_403_FORBIDDEN, "Forbidden", "FORBIDDEN")
    return booking


@router.get("/{booking_id}", response_model=schemas.Booking)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    return _load_owned_booking(db, booking_id, user)


@router.post("/{booking_id}/confirm", response_model=schemas.Booking)
def confirm_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    try:
        return booking_service.confirm(db, booking_id)
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc


@router.post("/{booking_id}/cancel", response_model=schemas.Booking)
def cancel_booking(
    booking_id: int,
    payload: schemas.BookingCancel | None = Body(default=None),
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    _load_owned_booking(db, booking_id, user)
    reason = payload.reason if payload else None
    try:
        return booking_service.cancel(db, booking_id, reason=reason)
    except booking_service.BookingError as exc:
        raise deps.booking_http_error(exc) from exc
