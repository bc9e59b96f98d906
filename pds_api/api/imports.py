"""Bulk import API router: users and payslips from CSV/Excel files."""

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from pds_api.core.config import settings
from pds_api.core.dependencies import get_import_service
from pds_api.core.security import require_hr
from pds_api.db.session import get_db
from pds_api.models.user import User
from pds_api.services.file_service import discard_staged, stage_upload
from pds_api.services.import_service import ImportService
from pds_api.services.tabular_reader import SUPPORTED_EXTENSIONS, read_rows

router = APIRouter(prefix="/imports", tags=["imports"])


async def _import(upload: UploadFile, prefix: str, handler, db: Session, actor: User) -> dict:
    path = await stage_upload(
        upload, settings.UPLOAD_DIR, prefix, SUPPORTED_EXTENSIONS, settings.MAX_CSV_UPLOAD_MB,
    )
    try:
        summary = handler(db, read_rows(path), actor)
    finally:
        discard_staged(path)
    return {
        "success": True,
        "message": (
            f"Processed {summary['total_records']} records: "
            f"{summary['success_count']} succeeded, {summary['error_count']} failed"
        ),
        "data": summary,
    }


@router.post("/users")
async def import_users(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    actor: User = Depends(require_hr),
    imports: ImportService = Depends(get_import_service),
):
    """Create users from a spreadsheet; bad rows are reported, not fatal."""
    return await _import(file, "users", imports.import_users, db, actor)


@router.post("/payslips")
async def import_payslips(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    actor: User = Depends(require_hr),
    imports: ImportService = Depends(get_import_service),
):
    """Attach payslips to existing users by Nat_ID (or phone number)."""
    return await _import(file, "payslips", imports.import_payslips, db, actor)
