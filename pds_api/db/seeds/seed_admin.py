"""Seed the admin user from env vars."""

from typing import Optional

from sqlalchemy.orm import Session
from pds_api.models.user import User
from pds_api.models.role import Role
from pds_api.core.security import hash_password
from pds_api.core.config import settings


def seed_admin(db: Session) -> Optional[User]:
    """Create the admin user if not already present.

    Returns the new user, or None when the role is missing or the
    account already exists.
    """
    admin_role = db.query(Role).filter(Role.name == "ADMIN").first()
    if not admin_role:
        return None

    existing = db.query(User).filter(User.email == settings.ADMIN_EMAIL).first()
    if existing:
        return None

    admin = User(
        first_name="System",
        last_name="Admin",
        email=settings.ADMIN_EMAIL,
        phone_number="0000000000",
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        is_active=True,
        is_verified=True,
        role_id=admin_role.id,
    )
    db.add(admin)
    db.commit()
    return admin
