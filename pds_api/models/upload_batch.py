"""Call-metrics upload batch model."""

import enum

from sqlalchemy import Column, Integer, String, Text, Date, Time, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from pds_api.db.base import Base


class UploadStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    CANCELLED = "CANCELLED"


class UploadBatch(Base):
    """One ingestion attempt of a call-metrics CSV.

    Status moves PENDING -> PROCESSED or PENDING -> CANCELLED; a processed
    batch may later be cancelled, which deletes its call records.
    """
    __tablename__ = "upload_batches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(String(20), nullable=False, default=UploadStatus.PENDING.value, index=True)
    record_count = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    report_date = Column(Date, nullable=False)
    report_time = Column(Time, nullable=False)
    upload_time = Column(DateTime, server_default=func.now(), nullable=False)

    uploader = relationship("User", lazy="joined")
