from sqlalchemy.orm import Session
from ..db import models
from . import security


def authenticate_user(db: Session, username: str, password: str) -> models.User | None:
    user = db.query(models.User).filter_by(username=username).first()
    if not user:
        return None
    if not security.verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        return None
    return user
