"""Seed default roles into the database."""

from sqlalchemy.orm import Session
from pds_api.models.role import Role

ROLES = [
    {"name": "USER", "level": 10, "description": "Employee: own profile and payslips"},
    {"name": "HR", "level": 50, "description": "Onboard users, manage payslips and imports"},
    {"name": "ADMIN", "level": 100, "description": "Full access, call uploads, videos and display"},
]


def seed_roles(db: Session) -> int:
    """Insert default roles if they don't already exist."""
    added = 0
    for role_data in ROLES:
        existing = db.query(Role).filter(Role.name == role_data["name"]).first()
        if not existing:
            db.add(Role(**role_data))
            added += 1

    db.commit()
    return added
