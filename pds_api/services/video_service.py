"""Video service: dashboard videos stored in MinIO, metadata in the database."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pds_api.core.exceptions import ResourceNotFoundError, StorageError, ValidationError
from pds_api.models.audit_log import AuditAction
from pds_api.models.user import User
from pds_api.models.video import Video
from pds_api.services.audit_service import AuditService
from pds_api.services.file_service import timestamped_name

logger = logging.getLogger("pds.videos")

ALLOWED_VIDEO_TYPES = ("video/mp4", "video/webm", "video/ogg", "video/quicktime")


class VideoService:

    def __init__(self, storage, max_mb: int = 100, audit: Optional[AuditService] = None):
        self.storage = storage
        self.max_mb = max_mb
        self.audit = audit or AuditService()

    def serialize(self, video: Video) -> Dict[str, Any]:
        try:
            url = self.storage.presigned_url(video.object_key)
        except StorageError as e:
            logger.warning("No URL for video %s: %s", video.id, e.message)
            url = None
        return {
            "id": video.id,
            "title": video.title,
            "description": video.description,
            "file_name": video.file_name,
            "mime_type": video.mime_type,
            "size_bytes": video.size_bytes,
            "is_active": video.is_active,
            "url": url,
            "created_at": video.created_at.isoformat() if video.created_at else None,
        }

    def upload(
        self,
        db: Session,
        content: bytes,
        filename: str,
        content_type: Optional[str],
        title: str,
        actor: User,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store the file in MinIO and record it.

        Raises:
            ValidationError: Wrong MIME type, empty or oversized file.
            StorageError: If MinIO rejects the object.
        """
        if content_type not in ALLOWED_VIDEO_TYPES:
            raise ValidationError("Invalid file type. Only video files are allowed")
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > self.max_mb * 1024 * 1024:
            raise ValidationError(f"File exceeds the {self.max_mb}MB limit")
        if not title or not title.strip():
            raise ValidationError("Title is required")

        key = f"videos/{timestamped_name('video', filename)}"
        self.storage.put_bytes(key, content, content_type)

        video = Video(
            title=title.strip(),
            description=description,
            file_name=filename,
            object_key=key,
            mime_type=content_type,
            size_bytes=len(content),
            is_active=True,
            uploaded_by=actor.id,
        )
        try:
            db.add(video)
            db.flush()
            self.audit.log(db, AuditAction.UPLOAD_VIDEO, f"Uploaded video: {video.title}",
                           user_id=actor.id, email=actor.email, commit=False)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            self._remove_object(key)
            raise
        db.refresh(video)
        return self.serialize(video)

    def list(self, db: Session, active_only: bool = False) -> List[Dict[str, Any]]:
        query = db.query(Video)
        if active_only:
            query = query.filter(Video.is_active.is_(True))
        return [self.serialize(v) for v in query.order_by(Video.created_at.desc(), Video.id.desc()).all()]

    def _get(self, db: Session, video_id: int) -> Video:
        video = db.query(Video).filter(Video.id == video_id).first()
        if not video:
            raise ResourceNotFoundError("Video not found")
        return video

    def get(self, db: Session, video_id: int) -> Dict[str, Any]:
        return self.serialize(self._get(db, video_id))

    def update(self, db: Session, video_id: int, changes: Dict[str, Any], actor: User) -> Dict[str, Any]:
        video = self._get(db, video_id)
        for field in ("title", "description", "is_active"):
            if changes.get(field) is not None:
                setattr(video, field, changes[field])
        self.audit.log(db, AuditAction.UPDATE_VIDEO, f"Updated video: {video.title}",
                       user_id=actor.id, email=actor.email, commit=False)
        db.commit()
        db.refresh(video)
        return self.serialize(video)

    def delete(self, db: Session, video_id: int, actor: User) -> None:
        video = self._get(db, video_id)
        key, title = video.object_key, video.title
        db.delete(video)
        self.audit.log(db, AuditAction.DELETE_VIDEO, f"Deleted video: {title}",
                       user_id=actor.id, email=actor.email, commit=False)
        db.commit()
        self._remove_object(key)

    def _remove_object(self, key: str) -> None:
        try:
            self.storage.remove(key)
        except StorageError as e:
            logger.warning("Could not remove video object %s: %s", key, e.message)
