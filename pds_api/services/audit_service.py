"""Audit service: append-only audit trail for security-relevant actions."""

from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from pds_api.models.audit_log import AuditTrail, AuditAction


def request_origin(request: Optional[Request]) -> dict:
    """Extract IP and user-agent from a request for audit entries."""
    if request is None:
        return {}
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent", "")[:500],
    }


class AuditService:
    """Records immutable audit entries.

    ``log`` commits by default so an entry is never lost; operations that must
    be atomic with the entry pass ``commit=False`` and commit themselves.
    """

    def log(
        self,
        db: Session,
        action: AuditAction,
        description: str,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        commit: bool = True,
    ) -> AuditTrail:
        entry = AuditTrail(
            user_id=user_id,
            email=email,
            action=action.value,
            description=description,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(entry)
        if commit:
            db.commit()
        return entry

    def query_logs(
        self,
        db: Session,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        """Query audit entries with filters and pagination."""
        query = db.query(AuditTrail)

        if user_id:
            query = query.filter(AuditTrail.user_id == user_id)
        if action:
            query = query.filter(AuditTrail.action == action.upper())

        total = query.count()
        logs = (
            query.order_by(AuditTrail.created_at.desc(), AuditTrail.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "logs": logs,
            "total": total,
            "page": page,
            "page_size": page_size,
        }
