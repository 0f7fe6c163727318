from dataclasses import asdict
import logging

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ...core import security
from ...core.auth import authenticate_user
from ...core.security import TokenAuthority, TokenExpired, TokenInvalid
from ...db.session import get_db
from ...db import models, schemas
from .. import deps

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(user: models.User, authority: TokenAuthority) -> schemas.AuthResponse:
    pair = authority.issue_pair(user.id)
    return schemas.AuthResponse(user=schemas.User.model_validate(user), **asdict(pair))


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    authority: TokenAuthority = Depends(deps.get_token_authority),
):
    existing = (
        db.query(models.User)
        .filter(or_(models.User.username == payload.username, models.User.email == payload.email))
        .first()
    )
    if existing:
        raise deps.http_error(status.HTTP_400_BAD_REQUEST, "Username or email already exists", "USER_EXISTS")
    user = models.User(
        name=payload.name,
        username=payload.username,
        email=payload.email,
        phone=payload.phone,
        city=payload.city,
        password_hash=security.get_password_hash(payload.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise deps.http_error(
            status.HTTP_400_BAD_REQUEST, "Username or email already exists", "USER_EXISTS"
        ) from exc
    db.refresh(user)
    logger.info("User registered", extra={"user_id": user.id})
    return _auth_response(user, authority)


@router.post("/login", response_model=schemas.AuthResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    authority: TokenAuthority = Depends(deps.get_token_authority),
):
    user = authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise deps.http_error(status.HTTP_401_UNAUTHORIZED, "Invalid credentials", "INVALID_CREDENTIALS")
    return _auth_response(user, authority)


@router.post("/refresh", response_model=schemas.AuthResponse)
def refresh(
    payload: schemas.RefreshRequest,
    db: Session = Depends(get_db),
    authority: TokenAuthority = Depends(deps.get_token_authority),
):
    try:
        user_id = authority.verify_refresh_token(payload.refresh_token)
    except (TokenExpired, TokenInvalid) as exc:
        raise deps.token_http_error(exc) from exc
    user = db.get(models.User, int(user_id)) if user_id.isdigit() else None
    # the account may have been disabled since the refresh token was issued
    if user is None or not user.is_active:
        raise deps.http_error(status.HTTP_401_UNAUTHORIZED, "User not found or disabled", "USER_DISABLED")
    return _auth_response(user, authority)


@router.get("/me", response_model=schemas.User)
def me(current: models.User = Depends(deps.get_current_user)):
    return current
