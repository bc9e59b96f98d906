"""Call-metrics API router: CSV uploads, upload history and leaderboards."""

import os
from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from pds_api.core.config import settings
from pds_api.core.dependencies import get_call_upload_service, get_metrics_service
from pds_api.core.security import require_admin, require_verified
from pds_api.db.session import get_db
from pds_api.models.user import User
from pds_api.services.call_upload_service import CallUploadService, serialize_batch
from pds_api.services.file_service import discard_staged, stage_upload
from pds_api.services.metrics_service import MetricsService
from pds_api.services.tabular_reader import read_csv_rows

router = APIRouter(prefix="/calls", tags=["calls"])


@router.post("/upload", status_code=201)
async def upload_calls(
    file: UploadFile = File(...),
    report_date: date = Form(...),
    report_time: time = Form(...),
    description: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    uploads: CallUploadService = Depends(get_call_upload_service),
):
    """Ingest a metrics CSV; any bad row rejects the whole file."""
    path = await stage_upload(
        file, os.path.join(settings.UPLOAD_DIR, "csv"), "calls", (".csv",), settings.MAX_CSV_UPLOAD_MB,
    )
    try:
        batch = uploads.process_upload(
            db, read_csv_rows(path), actor,
            file_name=file.filename, file_path=path,
            report_date=report_date, report_time=report_time,
            description=description,
        )
    except Exception:
        discard_staged(path)
        raise
    return {
        "success": True,
        "message": f"Successfully processed {batch.record_count} records",
        "data": serialize_batch(batch),
    }


@router.get("/uploads")
async def list_uploads(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    uploads: CallUploadService = Depends(get_call_upload_service),
):
    return {"success": True, "data": uploads.list_uploads(db, page, limit, status)}


@router.get("/uploads/{upload_id}")
async def get_upload(
    upload_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    uploads: CallUploadService = Depends(get_call_upload_service),
):
    return {"success": True, "data": uploads.get_upload_details(db, upload_id)}


@router.delete("/uploads/{upload_id}")
async def cancel_upload(
    upload_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    uploads: CallUploadService = Depends(get_call_upload_service),
):
    result = uploads.cancel_upload(db, upload_id, actor)
    return {
        "success": True,
        "message": f"Upload cancelled and {result['deleted_records']} records deleted",
        "data": result,
    }


@router.get("/filtered")
async def filtered_calls(
    department_id: Optional[int] = Query(None),
    agent_type_id: Optional[int] = Query(None),
    sort_by: str = Query("total"),
    top: bool = Query(True),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(require_verified),
    metrics: MetricsService = Depends(get_metrics_service),
):
    data = metrics.filtered_calls(db, department_id, agent_type_id, sort_by, top, limit)
    return {"success": True, "data": data}


@router.get("/performers")
async def performers(
    department_id: Optional[int] = Query(None),
    agent_type_id: Optional[int] = Query(None),
    sort_by: str = Query("total"),
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(require_verified),
    metrics: MetricsService = Depends(get_metrics_service),
):
    data = metrics.performers(db, department_id, agent_type_id, sort_by, limit)
    return {"success": True, "data": data}
