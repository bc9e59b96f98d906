"""Call-metrics ingestion: all-or-nothing reconciliation of agent CSVs."""

import logging
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pds_api.core.exceptions import (
    AlreadyCancelledError, DuplicateEntryError, PDSError,
    ResourceNotFoundError, UnknownEntitiesError, ValidationError,
)
from pds_api.models.audit_log import AuditAction
from pds_api.models.call_record import CallRecord
from pds_api.models.employee import Employee
from pds_api.models.upload_batch import UploadBatch, UploadStatus
from pds_api.models.user import User
from pds_api.services.audit_service import AuditService

logger = logging.getLogger("pds.calls")

COL_AGENT = "Agent Name"
COL_INBOUND = "Total Inbound Calls"
COL_OUTBOUND = "Total Outbound Calls"
REQUIRED_COLUMNS = (COL_AGENT, COL_INBOUND, COL_OUTBOUND)

LEADERBOARD_CACHE_PATTERN = "leaderboard:*"


def serialize_batch(batch: UploadBatch) -> Dict[str, Any]:
    return {
        "id": batch.id,
        "file_name": batch.file_name,
        "status": batch.status,
        "record_count": batch.record_count,
        "description": batch.description,
        "report_date": batch.report_date.isoformat(),
        "report_time": batch.report_time.strftime("%H:%M:%S"),
        "upload_time": batch.upload_time.isoformat() if batch.upload_time else None,
        "uploaded_by": batch.uploaded_by,
        "uploader_name": batch.uploader.full_name if batch.uploader else None,
    }


def _parse_count(value: Optional[str]) -> int:
    count = int(str(value).replace(",", "").strip())
    if count < 0:
        raise ValueError(value)
    return count


class CallUploadService:
    """Applies a metrics file only if every row reconciles.

    The batch row is committed as PENDING first so a rejected file still
    leaves a CANCELLED batch behind; call records and the PROCESSED status
    are committed together or not at all.
    """

    def __init__(self, cache=None, audit: Optional[AuditService] = None):
        self.cache = cache
        self.audit = audit or AuditService()

    def process_upload(
        self,
        db: Session,
        rows: Iterable[Dict[str, Optional[str]]],
        uploader: User,
        file_name: str,
        file_path: str,
        report_date: date,
        report_time: time,
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UploadBatch:
        """Ingest one metrics file for a (date, time) reporting slot.

        Raises:
            ValidationError: Future slot, empty file, or missing/invalid fields.
            UnknownEntitiesError: Agent names with no employee record.
            DuplicateEntryError: Agents that already have a record for the slot.
        """
        if datetime.combine(report_date, report_time) > (now or datetime.now()):
            raise ValidationError("Report date cannot be in the future")

        batch = UploadBatch(
            file_name=file_name,
            file_path=file_path,
            uploaded_by=uploader.id,
            status=UploadStatus.PENDING.value,
            record_count=0,
            description=description,
            report_date=report_date,
            report_time=report_time,
        )
        db.add(batch)
        db.commit()
        batch_id = batch.id

        try:
            entries = self._reconcile(db, list(rows), report_date, report_time)
            for employee_id, inbound, outbound in entries:
                db.add(CallRecord(
                    date=report_date,
                    report_time=report_time,
                    employee_id=employee_id,
                    inbound_calls=inbound,
                    outbound_calls=outbound,
                    upload_id=batch_id,
                ))
            batch.status = UploadStatus.PROCESSED.value
            batch.record_count = len(entries)
            self.audit.log(
                db, AuditAction.CSV_UPLOAD,
                f"Uploaded file {file_name} with {len(entries)} records "
                f"for {report_date.isoformat()} at {report_time.strftime('%H:%M')}",
                user_id=uploader.id, email=uploader.email, commit=False,
            )
            db.commit()
        except Exception as e:
            db.rollback()
            self._mark_cancelled(db, batch_id)
            if isinstance(e, PDSError):
                e.details.setdefault("upload_id", batch_id)
            logger.warning("Upload %s of %s rejected: %s", batch_id, file_name, e)
            raise

        self._invalidate_leaderboards()
        db.refresh(batch)
        logger.info("Upload %s processed with %s records", batch_id, batch.record_count)
        return batch

    def _reconcile(
        self, db: Session, rows: List[Dict[str, Optional[str]]], report_date: date, report_time: time,
    ) -> List[Tuple[int, int, int]]:
        if not rows:
            raise ValidationError("The file contains no data rows")

        problems: List[str] = []
        parsed: List[Tuple[str, int, int]] = []
        for line, row in enumerate(rows, start=2):
            missing = [col for col in REQUIRED_COLUMNS if not (row.get(col) or "").strip()]
            if missing:
                problems.append(f"Row {line}: missing {', '.join(missing)}")
                continue
            try:
                inbound = _parse_count(row[COL_INBOUND])
                outbound = _parse_count(row[COL_OUTBOUND])
            except ValueError:
                problems.append(f"Row {line}: call counts must be whole numbers")
                continue
            parsed.append((row[COL_AGENT].strip(), inbound, outbound))
        if problems:
            raise ValidationError(
                "Missing or invalid fields: " + "; ".join(problems), errors=problems,
            )

        names = list(dict.fromkeys(name for name, _, _ in parsed))
        employees = {
            e.agent_name: e
            for e in db.query(Employee).filter(Employee.agent_name.in_(names)).all()
        }
        unknown = [name for name in names if name not in employees]
        if unknown:
            raise UnknownEntitiesError(
                "The following agents were not found in the database: " + ", ".join(unknown),
                agents=unknown,
            )

        seen = set()
        repeated = []
        for name, _, _ in parsed:
            if name in seen and name not in repeated:
                repeated.append(name)
            seen.add(name)

        existing_ids = {
            employee_id for (employee_id,) in db.query(CallRecord.employee_id).filter(
                CallRecord.date == report_date,
                CallRecord.report_time == report_time,
                CallRecord.employee_id.in_([e.id for e in employees.values()]),
            ).all()
        }
        duplicates = repeated + [
            name for name in names
            if employees[name].id in existing_ids and name not in repeated
        ]
        if duplicates:
            raise DuplicateEntryError(
                "The following agents already have records for this date and time: "
                + ", ".join(duplicates),
                agents=duplicates,
            )

        return [(employees[name].id, inbound, outbound) for name, inbound, outbound in parsed]

    def _mark_cancelled(self, db: Session, batch_id: int) -> None:
        batch = db.query(UploadBatch).filter(UploadBatch.id == batch_id).first()
        if batch is not None:
            batch.status = UploadStatus.CANCELLED.value
            batch.record_count = 0
            db.commit()

    def cancel_upload(self, db: Session, upload_id: int, actor: User) -> Dict[str, Any]:
        """Delete a batch's call records and mark it CANCELLED in one transaction."""
        batch = db.query(UploadBatch).filter(UploadBatch.id == upload_id).first()
        if not batch:
            raise ResourceNotFoundError("Upload record not found")
        if batch.status == UploadStatus.CANCELLED.value:
            raise AlreadyCancelledError("This upload has already been cancelled")

        try:
            deleted = (
                db.query(CallRecord)
                .filter(CallRecord.upload_id == upload_id)
                .delete(synchronize_session=False)
            )
            batch.status = UploadStatus.CANCELLED.value
            self.audit.log(
                db, AuditAction.CSV_UPLOAD_CANCEL,
                f"Cancelled upload {upload_id} ({batch.file_name}) with {deleted} records",
                user_id=actor.id, email=actor.email, commit=False,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        self._invalidate_leaderboards()
        return {"upload_id": upload_id, "deleted_records": deleted}

    def list_uploads(
        self, db: Session, page: int = 1, limit: int = 10, status: Optional[str] = None,
    ) -> Dict[str, Any]:
        query = db.query(UploadBatch)
        if status:
            query = query.filter(UploadBatch.status == status.upper())

        total = query.count()
        batches = (
            query.order_by(UploadBatch.upload_time.desc(), UploadBatch.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "uploads": [serialize_batch(b) for b in batches],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "pages": (total + limit - 1) // limit,
            },
        }

    def get_upload_details(self, db: Session, upload_id: int) -> Dict[str, Any]:
        batch = db.query(UploadBatch).filter(UploadBatch.id == upload_id).first()
        if not batch:
            raise ResourceNotFoundError("Upload record not found")

        summary = (
            db.query(
                Employee.id,
                Employee.agent_name,
                CallRecord.date,
                CallRecord.report_time,
                func.sum(CallRecord.inbound_calls),
                func.sum(CallRecord.outbound_calls),
            )
            .select_from(CallRecord)
            .join(Employee, CallRecord.employee_id == Employee.id)
            .filter(CallRecord.upload_id == upload_id)
            .group_by(Employee.id, Employee.agent_name, CallRecord.date, CallRecord.report_time)
            .order_by(Employee.agent_name)
            .all()
        )
        return {
            "upload": serialize_batch(batch),
            "call_summary": [
                {
                    "employee_id": employee_id,
                    "agent_name": agent_name,
                    "date": day.isoformat(),
                    "report_time": slot.strftime("%H:%M:%S"),
                    "total_inbound": int(inbound or 0),
                    "total_outbound": int(outbound or 0),
                }
                for employee_id, agent_name, day, slot, inbound, outbound in summary
            ],
        }

    def _invalidate_leaderboards(self) -> None:
        if self.cache is not None:
            self.cache.invalidate_pattern(LEADERBOARD_CACHE_PATTERN)
