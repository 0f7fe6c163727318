from functools import lru_cache
from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from ..config import get_settings
from ..core.security import TokenAuthority, TokenExpired, TokenInvalid
from ..db.session import get_db
from ..db.models import User, UserRole
from ..services import booking_service


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

BEARER_HEADERS = {"WWW-Authenticate": "Bearer"}
RETRY_AFTER_SECONDS = 1


def http_error(
    status_code: int,
    message: str,
    code: str,
    headers: dict[str, str] | None = None,
    **extra,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"message": message, "code": code, **extra},
        headers=headers,
    )


@lru_cache(maxsize=1)
def get_token_authority() -> TokenAuthority:
    return TokenAuthority.from_settings(get_settings())


def token_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, TokenExpired):
        return http_error(status.HTTP_401_UNAUTHORIZED, "Token has expired", "TOKEN_EXPIRED", BEARER_HEADERS)
    return http_error(status.HTTP_401_UNAUTHORIZED, "Could not validate credentials", "INVALID_TOKEN", BEARER_HEADERS)


def booking_http_error(exc: booking_service.BookingError) -> HTTPException:
    if isinstance(exc, booking_service.SlotConflict):
        return http_error(status.HTTP_409_CONFLICT, str(exc), "SLOT_ALREADY_BOOKED")
    if isinstance(exc, (booking_service.BookingNotFound, booking_service.PitchNotFound)):
        return http_error(status.HTTP_404_NOT_FOUND, str(exc), "NOT_FOUND")
    if isinstance(exc, booking_service.InvalidBookingState):
        return http_error(status.HTTP_400_BAD_REQUEST, str(exc), "INVALID_STATUS")
    if isinstance(exc, booking_service.BookingValidationError):
        return http_error(status.HTTP_400_BAD_REQUEST, str(exc), "VALIDATION_ERROR")
    if isinstance(exc, booking_service.StorageUnavailable):
        return http_error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            str(exc),
            "STORAGE_UNAVAILABLE",
            {"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    return http_error(status.HTTP_400_BAD_REQUEST, str(exc), "BOOKING_ERROR")


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_db)],
    authority: Annotated[TokenAuthority, Depends(get_token_authority)],
) -> User:
    try:
        user_id = authority.verify_access_token(token)
    except (TokenExpired, TokenInvalid) as exc:
        raise token_http_error(exc) from exc
    if not user_id.isdigit():
        raise token_http_error(TokenInvalid("Malformed subject"))
    user = db.get(User, int(user_id))
    if user is None or not user.is_active:
        raise http_error(status.HTTP_401_UNAUTHORIZED, "User not found", "USER_NOT_FOUND", BEARER_HEADERS)
    return user


def require_roles(*roles: str):
    def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in roles:
            raise http_error(status.HTTP_403_FORBIDDEN, "Forbidden", "INSUFFICIENT_PERMISSIONS")
        return user

    return dependency


def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN
