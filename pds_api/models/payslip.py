"""Payslip model."""

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from pds_api.db.base import Base


class Payslip(Base):
    """One pay period for one user; at most one per (user, period)."""
    __tablename__ = "payslips"
    __table_args__ = (
        UniqueConstraint("user_id", "period", name="uq_payslip_user_period"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    period = Column(String(20), nullable=False)
    nat_id = Column(String(50), nullable=True, index=True)
    phone_number = Column(String(30), nullable=True)
    basic_pay = Column(Numeric(12, 2), nullable=False, default=0)
    commission = Column(Numeric(12, 2), nullable=False, default=0)
    backpay = Column(Numeric(12, 2), nullable=False, default=0)
    gross_pay = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    net_pay = Column(Numeric(12, 2), nullable=False, default=0)
    email_address = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", lazy="joined")
