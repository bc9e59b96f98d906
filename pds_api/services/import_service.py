"""Bulk import service: best-effort, row-by-row reconciliation.

Each row is validated, reconciled against existing users and committed on its
own. A failing row is rolled back and reported; it never aborts the rows
after it.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pds_api.core.exceptions import (
    DuplicateCredentialError, PDSError, ValidationError,
)
from pds_api.core.security import MAX_PASSWORD_BYTES, hash_password
from pds_api.models.audit_log import AuditAction
from pds_api.models.role import Role
from pds_api.models.user import User
from pds_api.services.audit_service import AuditService
from pds_api.services.auth_service import DEFAULT_ROLE, duplicate_credential_message
from pds_api.services.payslip_service import MONEY_FIELDS, PayslipService

logger = logging.getLogger("pds.imports")

USER_REQUIRED_FIELDS = ("first_name", "last_name", "email", "nat_id", "phone_number", "password")

# Spreadsheet headers that differ from the payslip field names
PAYSLIP_ALIASES = {
    "email": "email_address",
    "ecocash_number": "phone_number",
    "phone": "phone_number",
}


def normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Lower-case headers and turn spaces into underscores ('Nat ID' -> 'nat_id')."""
    return {
        str(key).strip().lower().replace(" ", "_"): value
        for key, value in row.items()
        if key is not None
    }


class ImportSummary:
    """Accumulates per-row outcomes into the response payload."""

    def __init__(self):
        self.total = 0
        self.successes: List[dict] = []
        self.errors: List[dict] = []

    def success(self, row_number: int, record_id: Any, **keys) -> None:
        self.successes.append({"row": row_number, "id": record_id, **keys})

    def failure(self, row_number: int, message: str, **keys) -> None:
        self.errors.append({"row": row_number, "error": message, "data": keys})

    def as_dict(self) -> dict:
        return {
            "total_records": self.total,
            "success_count": len(self.successes),
            "error_count": len(self.errors),
            "success_records": self.successes,
            "errors": self.errors,
        }


class ImportService:

    def __init__(
        self,
        payslips: Optional[PayslipService] = None,
        audit: Optional[AuditService] = None,
    ):
        self.audit = audit or AuditService()
        self.payslips = payslips or PayslipService(self.audit)

    def import_users(
        self, db: Session, rows: Iterable[Dict[str, Any]], actor: Optional[User] = None,
    ) -> dict:
        """Create one verified user per row.

        Rows need every column in ``USER_REQUIRED_FIELDS``; ``role`` defaults
        to USER and ``active`` = FALSE creates the account deactivated.
        """
        summary = ImportSummary()
        roles = {role.name: role for role in db.query(Role).all()}

        for index, raw in enumerate(rows, start=1):
            summary.total += 1
            row = normalize_row(raw)
            keys = {"nat_id": row.get("nat_id"), "email": row.get("email")}
            try:
                user = self._build_user(db, row, roles)
                db.add(user)
                db.commit()
                summary.success(index, user.id, **keys)
            except PDSError as e:
                db.rollback()
                summary.failure(index, e.message, **keys)
            except IntegrityError:
                db.rollback()
                summary.failure(index, "User with these credentials already exists", **keys)
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning("User import row %s failed: %s", index, e)
                summary.failure(index, "Row could not be saved", **keys)

        self._log_import(db, actor, AuditAction.USER_IMPORT, "users", summary)
        return summary.as_dict()

    def _build_user(self, db: Session, row: Dict[str, Any], roles: Dict[str, Role]) -> User:
        missing = [field for field in USER_REQUIRED_FIELDS if not row.get(field)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if "@" not in row["email"]:
            raise ValidationError(f"Invalid email address: {row['email']}")
        if len(row["password"].encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes")

        if db.query(User).filter(User.nat_id == row["nat_id"]).first():
            raise DuplicateCredentialError("User with this national ID already exists")
        message = duplicate_credential_message(db, row["email"], row["phone_number"])
        if message:
            raise DuplicateCredentialError(message)

        role_name = (row.get("role") or DEFAULT_ROLE).upper()
        role = roles.get(role_name)
        if role is None:
            raise ValidationError(f"Unknown role '{role_name}'")

        return User(
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            phone_number=row["phone_number"],
            nat_id=row["nat_id"],
            department=row.get("department"),
            hashed_password=hash_password(row["password"]),
            role_id=role.id,
            is_verified=True,
            is_active=str(row.get("active") or "").upper() != "FALSE",
        )

    def import_payslips(
        self, db: Session, rows: Iterable[Dict[str, Any]], actor: Optional[User] = None,
    ) -> dict:
        """Attach one payslip per row to the user found by Nat_ID or phone."""
        summary = ImportSummary()

        for index, raw in enumerate(rows, start=1):
            summary.total += 1
            row = normalize_row(raw)
            for alias, field in PAYSLIP_ALIASES.items():
                if alias in row and field not in row:
                    row[field] = row.pop(alias)
            keys = {
                "Period": row.get("period"),
                "Nat_ID": row.get("nat_id"),
                "Phone_Number": row.get("phone_number"),
            }
            data = {k: row.get(k) for k in ("period", "nat_id", "phone_number", "email_address", *MONEY_FIELDS)}
            try:
                payslip = self.payslips.create(db, data)
                summary.success(index, payslip.id, Period=payslip.period, Nat_ID=payslip.nat_id)
            except PDSError as e:
                db.rollback()
                summary.failure(index, e.message, **keys)
            except IntegrityError:
                db.rollback()
                summary.failure(index, "Payslip already exists for this period", **keys)
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning("Payslip import row %s failed: %s", index, e)
                summary.failure(index, "Row could not be saved", **keys)

        self._log_import(db, actor, AuditAction.PAYSLIP_IMPORT, "payslips", summary)
        return summary.as_dict()

    def _log_import(self, db: Session, actor: Optional[User], action: AuditAction,
                    noun: str, summary: ImportSummary) -> None:
        logger.info("Imported %s: %s ok, %s failed", noun,
                    len(summary.successes), len(summary.errors))
        if actor is None:
            return
        self.audit.log(
            db, action,
            f"Imported {len(summary.successes)} of {summary.total} {noun} "
            f"({len(summary.errors)} failed)",
            user_id=actor.id, email=actor.email,
        )
