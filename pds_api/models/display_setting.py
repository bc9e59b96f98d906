"""Key-value settings that drive the dashboard screen."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from pds_api.db.base import Base


class DisplaySetting(Base):
    """A typed display setting; ``setting_value`` is always stored as text."""
    __tablename__ = "display_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    setting_key = Column(String(100), unique=True, nullable=False, index=True)
    setting_value = Column(Text, nullable=False)
    setting_type = Column(String(20), nullable=False, default="string")  # string, number, boolean, json
    display_name = Column(String(255), nullable=False)
    description = Column(String(500), nullable=True)
    updated_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
