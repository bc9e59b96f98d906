"""Audit trail model: append-only."""

import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, event, func
from sqlalchemy.orm import Session
from pds_api.db.base import Base


class AuditAction(str, enum.Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    PASSWORD_RESET = "PASSWORD_RESET"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    USER_IMPORT = "USER_IMPORT"
    USER_STATUS_CHANGE = "USER_STATUS_CHANGE"
    PAYSLIP_IMPORT = "PAYSLIP_IMPORT"
    PAYSLIP_CREATE = "PAYSLIP_CREATE"
    PAYSLIP_UPDATE = "PAYSLIP_UPDATE"
    PAYSLIP_DELETE = "PAYSLIP_DELETE"
    CSV_UPLOAD = "CSV_UPLOAD"
    CSV_UPLOAD_CANCEL = "CSV_UPLOAD_CANCEL"
    UPLOAD_VIDEO = "UPLOAD_VIDEO"
    UPDATE_VIDEO = "UPDATE_VIDEO"
    DELETE_VIDEO = "DELETE_VIDEO"
    UPDATE_DISPLAY_SETTING = "UPDATE_DISPLAY_SETTING"


class AuditTrail(Base):
    """Immutable record of one security-relevant action.

    This table is APPEND-ONLY: flushing an UPDATE or DELETE of a row raises
    (see ``_reject_audit_mutation``). Entries outlive the user they refer to.
    """
    __tablename__ = "audit_trail"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email = Column(String(255), nullable=True)
    action = Column(String(50), nullable=False, index=True)
    description = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)


class AuditImmutableError(RuntimeError):
    pass


@event.listens_for(Session, "before_flush")
def _reject_audit_mutation(session, flush_context, instances):
    for obj in session.deleted:
        if isinstance(obj, AuditTrail):
            raise AuditImmutableError("Audit trail entries cannot be deleted")
    for obj in session.dirty:
        if isinstance(obj, AuditTrail) and session.is_modified(obj):
            raise AuditImmutableError("Audit trail entries cannot be modified")
