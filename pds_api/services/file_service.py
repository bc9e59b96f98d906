"""File handling: local staging of tabular uploads and MinIO object storage."""

import io
import logging
import os
import re
import time
from datetime import timedelta
from typing import Iterable

from fastapi import UploadFile
from minio import Minio
from minio.error import S3Error

from pds_api.core.config import Settings
from pds_api.core.exceptions import StorageError, ValidationError

logger = logging.getLogger("pds.files")


def safe_filename(filename: str) -> str:
    name = os.path.basename(filename or "upload")
    return re.sub(r"[^A-Za-z0-9._-]", "_", name) or "upload"


def timestamped_name(prefix: str, filename: str) -> str:
    """``{prefix}_{millis}_{name}`` so concurrent uploads never collide."""
    return f"{prefix}_{int(time.time() * 1000)}_{safe_filename(filename)}"


async def read_limited(upload: UploadFile, allowed_extensions: Iterable[str], max_mb: int) -> bytes:
    """Read an upload after checking its extension and size."""
    ext = os.path.splitext(upload.filename or "")[1].lower()
    allowed = tuple(allowed_extensions)
    if ext not in allowed:
        raise ValidationError(f"Only {', '.join(allowed)} files are allowed")
    content = await upload.read()
    if not content:
        raise ValidationError("Uploaded file is empty")
    if len(content) > max_mb * 1024 * 1024:
        raise ValidationError(f"File exceeds the {max_mb}MB limit")
    return content


async def stage_upload(
    upload: UploadFile,
    upload_dir: str,
    prefix: str,
    allowed_extensions: Iterable[str],
    max_mb: int,
) -> str:
    """Write an upload into the shared upload directory and return its path."""
    content = await read_limited(upload, allowed_extensions, max_mb)
    os.makedirs(upload_dir, exist_ok=True)
    path = os.path.join(upload_dir, timestamped_name(prefix, upload.filename))
    with open(path, "wb") as fh:
        fh.write(content)
    return path


def discard_staged(path: str) -> None:
    """Remove a staged file; a failure is logged, never raised."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove staged file %s: %s", path, e)


class ObjectStorage:
    """Thin wrapper over a MinIO bucket."""

    def __init__(self, settings: Settings):
        self.client = Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
        )
        self.bucket = settings.MINIO_BUCKET

    def ensure_bucket(self) -> None:
        """Create the bucket if it doesn't exist."""
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                self.bucket, key, io.BytesIO(data), length=len(data), content_type=content_type,
            )
        except S3Error as e:
            raise StorageError(f"Failed to upload to storage: {e}")

    def presigned_url(self, key: str, expires_minutes: int = 60) -> str:
        try:
            return self.client.presigned_get_object(
                self.bucket, key, expires=timedelta(minutes=expires_minutes)
            )
        except S3Error as e:
            raise StorageError(f"Failed to generate presigned URL: {e}")

    def remove(self, key: str) -> None:
        try:
            self.client.remove_object(self.bucket, key)
        except S3Error as e:
            raise StorageError(f"Failed to delete from storage: {e}")
