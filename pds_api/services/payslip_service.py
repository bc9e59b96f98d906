"""Payslip service: owner resolution and single-record management."""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from pds_api.core.exceptions import (
    DuplicateEntryError, ResourceNotFoundError, ValidationError,
)
from pds_api.models.audit_log import AuditAction
from pds_api.models.payslip import Payslip
from pds_api.models.user import User
from pds_api.services.audit_service import AuditService

MONEY_FIELDS = ("basic_pay", "commission", "backpay", "gross_pay", "tax", "net_pay")


def parse_amount(field: str, value: Any) -> Decimal:
    """Blank means zero; anything else must be a number."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal("0")
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount for {field}: {value}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount for {field}: {value}")
    return amount.quantize(Decimal("0.01"))


def resolve_owner(db: Session, nat_id: Optional[str], phone_number: Optional[str]) -> Optional[User]:
    """Find the payslip owner by national ID, falling back to phone number."""
    if nat_id:
        user = db.query(User).filter(User.nat_id == nat_id).first()
        if user:
            return user
    if phone_number:
        return db.query(User).filter(User.phone_number == phone_number).first()
    return None


class PayslipService:

    def __init__(self, audit: Optional[AuditService] = None):
        self.audit = audit or AuditService()

    def create(
        self,
        db: Session,
        data: Dict[str, Any],
        actor: Optional[User] = None,
        commit: bool = True,
    ) -> Payslip:
        """Attach a new payslip to an existing user.

        ``data`` carries ``period``, ``nat_id`` and/or ``phone_number``, the
        money fields and an optional ``email_address``.

        Raises:
            ValidationError: Missing period/owner key or malformed amount.
            ResourceNotFoundError: No user matches the national ID or phone.
            DuplicateEntryError: The user already has a payslip for the period.
        """
        period = (data.get("period") or "").strip()
        nat_id = data.get("nat_id") or None
        phone = data.get("phone_number") or None
        if not period or not (nat_id or phone):
            raise ValidationError("Missing required fields (Period and Nat_ID)")

        amounts = {field: parse_amount(field, data.get(field)) for field in MONEY_FIELDS}

        owner = resolve_owner(db, nat_id, phone)
        if not owner:
            key = f"Nat_ID {nat_id}" if nat_id else f"phone number {phone}"
            raise ResourceNotFoundError(f"User with {key} not found")

        exists = db.query(Payslip).filter(
            Payslip.user_id == owner.id, Payslip.period == period,
        ).first()
        if exists:
            raise DuplicateEntryError(f"Payslip for period {period} already exists for this user")

        payslip = Payslip(
            user_id=owner.id,
            period=period,
            nat_id=owner.nat_id or nat_id,
            phone_number=phone or owner.phone_number,
            email_address=data.get("email_address") or owner.email,
            **amounts,
        )
        db.add(payslip)
        db.flush()
        if actor is not None:
            self.audit.log(db, AuditAction.PAYSLIP_CREATE,
                           f"Created payslip {payslip.id} for {owner.email} ({period})",
                           user_id=actor.id, email=actor.email, commit=False)
        if commit:
            db.commit()
            db.refresh(payslip)
        return payslip

    def get(self, db: Session, payslip_id: int) -> Payslip:
        payslip = db.query(Payslip).filter(Payslip.id == payslip_id).first()
        if not payslip:
            raise ResourceNotFoundError("Payslip not found")
        return payslip

    def list_for_user(self, db: Session, user: User) -> List[Payslip]:
        return (
            db.query(Payslip)
            .filter(Payslip.user_id == user.id)
            .order_by(Payslip.period.desc())
            .all()
        )

    def list_for_nat_id(self, db: Session, nat_id: str) -> List[Payslip]:
        user = db.query(User).filter(User.nat_id == nat_id).first()
        if not user:
            raise ResourceNotFoundError(f"User with Nat_ID {nat_id} not found")
        return self.list_for_user(db, user)

    def update(self, db: Session, payslip_id: int, changes: Dict[str, Any], actor: User) -> Payslip:
        """Apply field changes; the owner is fixed once a payslip exists."""
        payslip = self.get(db, payslip_id)

        new_nat_id = changes.get("nat_id")
        if new_nat_id and new_nat_id != payslip.nat_id:
            raise ValidationError("Cannot change Nat_ID of an existing payslip")

        period = changes.get("period")
        if period and period != payslip.period:
            clash = db.query(Payslip).filter(
                Payslip.user_id == payslip.user_id,
                Payslip.period == period,
                Payslip.id != payslip.id,
            ).first()
            if clash:
                raise DuplicateEntryError(f"Payslip for period {period} already exists for this user")

        updates = {k: v for k, v in changes.items() if v is not None and k != "nat_id"}
        for field in MONEY_FIELDS:
            if field in updates:
                updates[field] = parse_amount(field, updates[field])
        for field, value in updates.items():
            setattr(payslip, field, value)

        self.audit.log(db, AuditAction.PAYSLIP_UPDATE,
                       f"Updated payslip {payslip.id} ({', '.join(sorted(updates)) or 'no changes'})",
                       user_id=actor.id, email=actor.email, commit=False)
        db.commit()
        db.refresh(payslip)
        return payslip

    def delete(self, db: Session, payslip_id: int, actor: User) -> None:
        payslip = self.get(db, payslip_id)
        description = f"Deleted payslip {payslip.id} ({payslip.period}) of user {payslip.user_id}"
        db.delete(payslip)
        self.audit.log(db, AuditAction.PAYSLIP_DELETE, description,
                       user_id=actor.id, email=actor.email, commit=False)
        db.commit()
