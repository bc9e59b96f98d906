"""Models package: import all models so metadata.create_all sees them."""

from pds_api.models.role import Role
from pds_api.models.user import User
from pds_api.models.auth_token import AuthToken, TokenType
from pds_api.models.audit_log import AuditTrail, AuditAction
from pds_api.models.upload_batch import UploadBatch, UploadStatus
from pds_api.models.employee import Department, AgentType, Employee
from pds_api.models.call_record import CallRecord
from pds_api.models.payslip import Payslip
from pds_api.models.video import Video
from pds_api.models.display_setting import DisplaySetting

__all__ = [
    "Role", "User", "AuthToken", "TokenType",
    "AuditTrail", "AuditAction", "UploadBatch", "UploadStatus",
    "Department", "AgentType", "Employee", "CallRecord",
    "Payslip", "Video", "DisplaySetting",
]
