"""Videos API router: upload and manage dashboard videos."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from pds_api.core.dependencies import get_video_service
from pds_api.core.security import require_admin
from pds_api.db.session import get_db
from pds_api.models.user import User
from pds_api.schemas.schemas import MessageResponse, VideoUpdate
from pds_api.services.video_service import VideoService

router = APIRouter(prefix="/videos", tags=["videos"])


@router.post("/", status_code=201)
async def upload_video(
    file: UploadFile = File(...),
    title: str = Form(...),
    description: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    videos: VideoService = Depends(get_video_service),
):
    content = await file.read()
    video = videos.upload(
        db, content, file.filename or "video", file.content_type, title, actor, description,
    )
    return {"success": True, "message": "Video uploaded successfully", "data": video}


@router.get("/")
async def list_videos(
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    videos: VideoService = Depends(get_video_service),
):
    return {"success": True, "data": videos.list(db, active_only)}


@router.get("/{video_id}")
async def get_video(
    video_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    videos: VideoService = Depends(get_video_service),
):
    return {"success": True, "data": videos.get(db, video_id)}


@router.put("/{video_id}")
async def update_video(
    video_id: int,
    body: VideoUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    videos: VideoService = Depends(get_video_service),
):
    video = videos.update(db, video_id, body.model_dump(exclude_unset=True), actor)
    return {"success": True, "message": "Video updated successfully", "data": video}


@router.delete("/{video_id}", response_model=MessageResponse)
async def delete_video(
    video_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
    videos: VideoService = Depends(get_video_service),
):
    videos.delete(db, video_id, actor)
    return MessageResponse(message="Video deleted successfully")
