"""Display settings service: typed key/value configuration for the dashboard."""

import json
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from pds_api.core.exceptions import ResourceNotFoundError, ValidationError
from pds_api.models.audit_log import AuditAction
from pds_api.models.display_setting import DisplaySetting
from pds_api.models.user import User
from pds_api.services.audit_service import AuditService

DEFAULT_DISPLAY_CONFIGURATION = {
    "showTopPerformers": True,
    "showBottomPerformers": True,
    "showDepartmentFilters": True,
    "showAgentTypeFilters": True,
    "primaryMetric": "total",
    "refreshInterval": 60,
    "theme": "default",
}

DEFAULT_SETTINGS = [
    {
        "setting_key": "video_display_duration",
        "setting_value": "300",
        "setting_type": "number",
        "display_name": "Video Display Duration",
        "description": "Seconds each video is shown before switching to metrics",
    },
    {
        "setting_key": "metrics_display_duration",
        "setting_value": "60",
        "setting_type": "number",
        "display_name": "Metrics Display Duration",
        "description": "Seconds the metrics board is shown before switching to videos",
    },
    {
        "setting_key": "top_performers_count",
        "setting_value": "5",
        "setting_type": "number",
        "display_name": "Top Performers Count",
        "description": "Number of top performers to show",
    },
    {
        "setting_key": "bottom_performers_count",
        "setting_value": "5",
        "setting_type": "number",
        "display_name": "Bottom Performers Count",
        "description": "Number of bottom performers to show",
    },
    {
        "setting_key": "display_configuration",
        "setting_value": json.dumps(DEFAULT_DISPLAY_CONFIGURATION),
        "setting_type": "json",
        "display_name": "Display Configuration",
        "description": "Layout and behaviour options for the display screen",
    },
]


def parse_value(raw: str, setting_type: str) -> Any:
    """Turn the stored text back into a typed value."""
    if setting_type == "number":
        number = float(raw)
        return int(number) if number.is_integer() else number
    if setting_type == "boolean":
        return raw.lower() == "true"
    if setting_type == "json":
        return json.loads(raw)
    return raw


def format_value(value: Any, setting_type: str) -> str:
    """Validate ``value`` against the setting type and render it as text.

    Raises:
        ValidationError: If the value does not fit the type.
    """
    if setting_type == "number":
        if isinstance(value, bool):
            raise ValidationError("Value must be a number")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError("Value must be a number")
        return str(int(number)) if number.is_integer() else str(number)
    if setting_type == "boolean":
        if isinstance(value, bool):
            return "true" if value else "false"
        if str(value).lower() in ("true", "false"):
            return str(value).lower()
        raise ValidationError("Value must be true or false")
    if setting_type == "json":
        if isinstance(value, str):
            try:
                json.loads(value)
            except ValueError:
                raise ValidationError("Value must be valid JSON")
            return value
        try:
            return json.dumps(value)
        except (TypeError, ValueError):
            raise ValidationError("Value must be JSON serializable")
    return "" if value is None else str(value)


def serialize_setting(setting: DisplaySetting) -> Dict[str, Any]:
    return {
        "id": setting.id,
        "setting_key": setting.setting_key,
        "setting_value": setting.setting_value,
        "setting_type": setting.setting_type,
        "display_name": setting.display_name,
        "description": setting.description,
        "parsed_value": parse_value(setting.setting_value, setting.setting_type),
        "updated_at": setting.updated_at.isoformat() if setting.updated_at else None,
    }


class DisplaySettingsService:

    def __init__(self, audit: Optional[AuditService] = None):
        self.audit = audit or AuditService()

    def initialize_defaults(self, db: Session) -> int:
        """Insert any default settings that are missing; returns how many were added."""
        existing = {key for (key,) in db.query(DisplaySetting.setting_key).all()}
        added = 0
        for default in DEFAULT_SETTINGS:
            if default["setting_key"] not in existing:
                db.add(DisplaySetting(**default))
                added += 1
        db.commit()
        return added

    def get_all(self, db: Session) -> List[Dict[str, Any]]:
        settings = db.query(DisplaySetting).order_by(DisplaySetting.setting_key).all()
        return [serialize_setting(s) for s in settings]

    def as_mapping(self, db: Session) -> Dict[str, Any]:
        """``{key: parsed_value}`` for the public display screen."""
        return {s["setting_key"]: s["parsed_value"] for s in self.get_all(db)}

    def update(self, db: Session, key: str, value: Any, actor: User) -> Dict[str, Any]:
        setting = db.query(DisplaySetting).filter(DisplaySetting.setting_key == key).first()
        if not setting:
            raise ResourceNotFoundError(f"Setting '{key}' not found")

        setting.setting_value = format_value(value, setting.setting_type)
        setting.updated_by = actor.id
        self.audit.log(db, AuditAction.UPDATE_DISPLAY_SETTING,
                       f"Updated display setting: {setting.display_name}",
                       user_id=actor.id, email=actor.email, commit=False)
        db.commit()
        db.refresh(setting)
        return serialize_setting(setting)
