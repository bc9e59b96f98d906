"""Role model for RBAC."""

from sqlalchemy import Column, Integer, String, DateTime, func
from pds_api.db.base import Base


class Role(Base):
    """System role with a hierarchical level (USER < HR < ADMIN)."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    level = Column(Integer, nullable=False, default=10)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
