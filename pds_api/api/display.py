"""Display API routers: admin settings management and the public display feed."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pds_api.core.dependencies import (
    get_display_settings_service, get_metrics_service, get_video_service,
)
from pds_api.core.security import require_admin
from pds_api.db.session import get_db
from pds_api.models.user import User
from pds_api.schemas.schemas import DisplaySettingUpdate
from pds_api.services.display_settings_service import DisplaySettingsService
from pds_api.services.metrics_service import MetricsService
from pds_api.services.video_service import VideoService

settings_router = APIRouter(prefix="/display-settings", tags=["display-settings"])
public_router = APIRouter(prefix="/display", tags=["display"])


@settings_router.get("/")
async def get_display_settings(
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    service: DisplaySettingsService = Depends(get_display_settings_service),
):
    return {"success": True, "data": service.get_all(db)}


@settings_router.put("/{key}")
async def update_display_setting(
    key: str,
    body: DisplaySettingUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    service: DisplaySettingsService = Depends(get_display_settings_service),
):
    setting = service.update(db, key, body.value, actor)
    return {"success": True, "message": "Setting updated successfully", "data": setting}


@settings_router.post("/initialize")
async def initialize_display_settings(
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    service: DisplaySettingsService = Depends(get_display_settings_service),
):
    added = service.initialize_defaults(db)
    return {"success": True, "message": f"Initialized {added} default settings"}


# ---- public, unauthenticated feed for the display screen ----

@public_router.get("/settings")
async def display_settings(
    db: Session = Depends(get_db),
    service: DisplaySettingsService = Depends(get_display_settings_service),
):
    return {"success": True, "data": service.as_mapping(db)}


@public_router.get("/videos")
async def display_videos(
    db: Session = Depends(get_db),
    videos: VideoService = Depends(get_video_service),
):
    return {"success": True, "data": videos.list(db, active_only=True)}


@public_router.get("/performers")
async def display_performers(
    department_id: Optional[int] = Query(None),
    agent_type_id: Optional[int] = Query(None),
    sort_by: str = Query("total"),
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    metrics: MetricsService = Depends(get_metrics_service),
):
    return {"success": True, "data": metrics.performers(db, department_id, agent_type_id, sort_by, limit)}


@public_router.get("/metrics")
async def display_metrics(
    department_id: Optional[int] = Query(None),
    agent_type_id: Optional[int] = Query(None),
    sort_by: str = Query("total"),
    top: bool = Query(True),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    metrics: MetricsService = Depends(get_metrics_service),
):
    data = metrics.filtered_calls(db, department_id, agent_type_id, sort_by, top, limit)
    return {"success": True, "data": data}
