"""Schema creation and the bootstrap admin account, run at startup.

The bootstrap admin gets a random password that is shown once on the console.
"""
import logging
import secrets

from pharmacy_api import models  # noqa: F401 - register models
from pharmacy_api.core.config import settings
from pharmacy_api.core.security import get_password_hash
from pharmacy_api.db.base import Base
from pharmacy_api.db.session import SessionLocal, engine
from pharmacy_api.models.user import Admin

logger = logging.getLogger(__name__)


def _ensure_default_admin(db) -> None:
    if db.query(Admin.id).first() is not None:
        return

    password = secrets.token_urlsafe(16)
    db.add(Admin(
        email=settings.DEFAULT_ADMIN_EMAIL,
        name="Admin User",
        password_hash=get_password_hash(password),
        role="admin",
    ))
    db.commit()

    banner = "=" * 70
    print(f"\n{banner}\nBootstrap admin account\n{banner}")
    print(f"Email:    {settings.DEFAULT_ADMIN_EMAIL}\nPassword: {password}")
    print(f"Sign in at /api/auth/admin/login and rotate this password.\n{banner}\n")
    logger.warning(f"Created bootstrap admin {settings.DEFAULT_ADMIN_EMAIL}")


def init_db(create_default_admin: bool = True):
    Base.metadata.create_all(bind=engine)
    if not create_default_admin:
        return

    db = SessionLocal()
    try:
        _ensure_default_admin(db)
    finally:
        db.close()
