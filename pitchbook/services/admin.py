import logging
from sqlalchemy.orm import Session

from ..core import security
from ..db import models

logger = logging.getLogger(__name__)


def ensure_admin_exists(session: Session, username: str, password: str) -> None:
    admin = session.query(models.User).filter_by(username=username).first()
    if admin:
        updated = False
        if not security.verify_password(password, admin.password_hash):
            admin.password_hash = security.get_password_hash(password)
            updated = True
        if admin.role != models.UserRole.ADMIN:
            admin.role = models.UserRole.ADMIN
            updated = True
        if not admin.is_active:
            admin.is_active = True
            updated = True
        if updated:
            session.commit()
            logger.info("Updated default admin user '%s'", username)
        else:
            logger.info("Admin user '%s' already exists", username)
        return

    admin = models.User(
        username=username,
        email=f"{username}@pitchbook.local",
        name="Administrator",
        password_hash=security.get_password_hash(password),
        role=models.UserRole.ADMIN,
    )
    session.add(admin)
    session.commit()
    logger.info("Created default admin user '%s'", username)
