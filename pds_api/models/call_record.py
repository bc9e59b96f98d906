"""Per-agent call counts for one reporting slot."""

from sqlalchemy import (
    Column, Integer, Date, Time, DateTime, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from pds_api.db.base import Base


class CallRecord(Base):
    __tablename__ = "call_records"
    __table_args__ = (
        UniqueConstraint("date", "report_time", "employee_id", name="uq_call_slot_employee"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    report_time = Column(Time, nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    inbound_calls = Column(Integer, nullable=False, default=0)
    outbound_calls = Column(Integer, nullable=False, default=0)
    upload_id = Column(Integer, ForeignKey("upload_batches.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    employee = relationship("Employee", lazy="joined")
