"""Admin / Audit API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pds_api.core.dependencies import get_audit_service, get_cache_service
from pds_api.core.exceptions import ResourceNotFoundError
from pds_api.core.security import require_admin
from pds_api.db.session import get_db
from pds_api.models.audit_log import AuditAction
from pds_api.models.auth_token import TokenType
from pds_api.models.role import Role
from pds_api.models.user import User
from pds_api.schemas.schemas import AuditLogOut, UserOut, UserStatusUpdate
from pds_api.services.audit_service import AuditService, request_origin
from pds_api.services.cache_service import CacheService
from pds_api.services.token_service import TokenLedger

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ResourceNotFoundError("User not found")
    return user


@router.get("/users")
async def admin_list_users(
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """List all users (admin only)."""
    query = db.query(User)
    if role:
        query = query.join(Role, User.role_id == Role.id).filter(Role.name == role.upper())
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))

    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.email)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "success": True,
        "data": [UserOut.model_validate(u).model_dump(mode="json") for u in users],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.get("/users/{user_id}")
async def admin_get_user(
    user_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return {"success": True, "data": UserOut.model_validate(_get_user(db, user_id)).model_dump(mode="json")}


@router.patch("/users/{user_id}/status")
async def admin_update_user_status(
    user_id: str,
    body: UserStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    audit: AuditService = Depends(get_audit_service),
):
    """Activate or deactivate an account; deactivation also ends its sessions."""
    user = _get_user(db, user_id)
    user.is_active = body.is_active
    if not body.is_active:
        TokenLedger().revoke_all(db, user.id, TokenType.REFRESH)
    state = "activated" if body.is_active else "deactivated"
    audit.log(db, AuditAction.USER_STATUS_CHANGE, f"User {user.email} {state}",
              user_id=admin.id, email=admin.email, commit=False, **request_origin(request))
    db.commit()
    db.refresh(user)
    return {
        "success": True,
        "message": f"User {state} successfully",
        "data": UserOut.model_validate(user).model_dump(mode="json"),
    }


@router.get("/audit")
async def get_audit_logs(
    action: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    audit: AuditService = Depends(get_audit_service),
):
    """Query the audit trail (admin only)."""
    result = audit.query_logs(db, user_id, action, page, page_size)
    return {
        "success": True,
        "data": [AuditLogOut.model_validate(log).model_dump(mode="json") for log in result["logs"]],
        "total": result["total"],
        "page": result["page"],
        "page_size": result["page_size"],
    }


@router.get("/health")
async def health_check(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """System health check: DB and Redis."""
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        pass

    redis_ok = cache.health_check()

    return {
        "database": "ok" if db_ok else "error",
        "redis": "ok" if redis_ok else "error",
        "status": "healthy" if db_ok else "degraded",
    }
