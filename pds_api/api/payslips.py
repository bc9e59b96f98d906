"""Payslip API router."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pds_api.core.dependencies import get_payslip_service
from pds_api.core.exceptions import AuthorizationError
from pds_api.core.security import RequireRole, get_current_user, require_hr
from pds_api.db.session import get_db
from pds_api.models.user import User
from pds_api.schemas.schemas import MessageResponse, PayslipCreate, PayslipOut, PayslipUpdate
from pds_api.services.payslip_service import PayslipService

router = APIRouter(prefix="/payslips", tags=["payslips"])


def _out(payslip) -> dict:
    return PayslipOut.model_validate(payslip).model_dump(mode="json")


@router.post("/", status_code=201)
async def add_payslip(
    body: PayslipCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_hr),
    payslips: PayslipService = Depends(get_payslip_service),
):
    payslip = payslips.create(db, body.model_dump(), actor=actor)
    return {"success": True, "message": "Payslip added successfully", "data": _out(payslip)}


@router.get("/mine")
async def my_payslips(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    payslips: PayslipService = Depends(get_payslip_service),
):
    return {"success": True, "data": [_out(p) for p in payslips.list_for_user(db, user)]}


@router.get("/user/{nat_id}")
async def user_payslips(
    nat_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_hr),
    payslips: PayslipService = Depends(get_payslip_service),
):
    return {"success": True, "data": [_out(p) for p in payslips.list_for_nat_id(db, nat_id)]}


@router.get("/{payslip_id}")
async def get_payslip(
    payslip_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    payslips: PayslipService = Depends(get_payslip_service),
):
    """Owners can read their own payslip; HR and admins can read any."""
    payslip = payslips.get(db, payslip_id)
    is_staff = RequireRole.ROLE_LEVELS.get(user.role_name, 0) >= RequireRole.ROLE_LEVELS["HR"]
    if payslip.user_id != user.id and not is_staff:
        raise AuthorizationError("You can only view your own payslips")
    return {"success": True, "data": _out(payslip)}


@router.put("/{payslip_id}")
async def update_payslip(
    payslip_id: int,
    body: PayslipUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_hr),
    payslips: PayslipService = Depends(get_payslip_service),
):
    payslip = payslips.update(db, payslip_id, body.model_dump(exclude_unset=True), actor)
    return {"success": True, "message": "Payslip updated successfully", "data": _out(payslip)}


@router.delete("/{payslip_id}", response_model=MessageResponse)
async def delete_payslip(
    payslip_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_hr),
    payslips: PayslipService = Depends(get_payslip_service),
):
    payslips.delete(db, payslip_id, actor)
    return MessageResponse(message="Payslip deleted successfully")
