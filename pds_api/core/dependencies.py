"""Service providers.

Long-lived clients (SMTP, MinIO, Redis) are built once per process by these
cached factories and passed into the services that need them. Routes depend
on the ``get_*_service`` functions, which tests replace through
``app.dependency_overrides``.
"""

from functools import lru_cache

from pds_api.core.config import settings
from pds_api.services.audit_service import AuditService
from pds_api.services.auth_service import AuthService
from pds_api.services.cache_service import CacheService
from pds_api.services.call_upload_service import CallUploadService
from pds_api.services.display_settings_service import DisplaySettingsService
from pds_api.services.file_service import ObjectStorage
from pds_api.services.import_service import ImportService
from pds_api.services.mail_service import MailService, SmtpTransport
from pds_api.services.metrics_service import MetricsService
from pds_api.services.payslip_service import PayslipService
from pds_api.services.video_service import VideoService


@lru_cache
def get_mail_service() -> MailService:
    return MailService(SmtpTransport(settings), settings)


@lru_cache
def get_object_storage() -> ObjectStorage:
    return ObjectStorage(settings)


@lru_cache
def get_cache_service() -> CacheService:
    return CacheService(settings.REDIS_URL)


@lru_cache
def get_audit_service() -> AuditService:
    return AuditService()


def get_auth_service() -> AuthService:
    return AuthService(get_mail_service(), settings, audit=get_audit_service())


def get_payslip_service() -> PayslipService:
    return PayslipService(get_audit_service())


def get_import_service() -> ImportService:
    return ImportService(get_payslip_service(), get_audit_service())


def get_call_upload_service() -> CallUploadService:
    return CallUploadService(get_cache_service(), get_audit_service())


def get_metrics_service() -> MetricsService:
    return MetricsService(get_cache_service(), settings.LEADERBOARD_CACHE_SECONDS)


def get_display_settings_service() -> DisplaySettingsService:
    return DisplaySettingsService(get_audit_service())


def get_video_service() -> VideoService:
    return VideoService(get_object_storage(), settings.MAX_VIDEO_UPLOAD_MB, get_audit_service())
