# viewtuber/api/routes/videos.py
from fastapi import APIRouter, Body, Depends

from viewtuber import deps
from viewtuber.auth.userctx import current_user
from viewtuber.models.schemas import (
    AbortUploadRequest,
    ApprovalRequest,
    CompleteUploadRequest,
    EditedVideoRequest,
    SessionUser,
    UpdateVideoRequest,
)

router = APIRouter(tags=["videos"])

# ---------- member edits ----------
@router.patch("/projects/{project_id}/videos/{video_id}", status_code=200)
def update_video(project_id: str, video_id: str, body: UpdateVideoRequest = Body(...),
                 u: SessionUser = Depends(current_user)):
    """Apply only the fields the caller holds `video.<field>:write` for."""
    result = deps.project_service().update_video(project_id, video_id, u.user_id, body.updates)
    return {"success": True, "message": "Video updated successfully", "data": result}

# ---------- multipart uploads ----------
@router.post("/projects/{project_id}/videos/{video_id}/edited", status_code=201)
def start_edited_upload(project_id: str, video_id: str, body: EditedVideoRequest = Body(...),
                        u: SessionUser = Depends(current_user)):
    data = deps.project_service().submit_edited_video(
        project_id, video_id, u.user_id, body.filename, body.content_type, body.parts
    )
    return {"success": True, "data": data}

@router.put("/projects/{project_id}/videos/{video_id}/upload", status_code=200)
def complete_upload(project_id: str, video_id: str, body: CompleteUploadRequest = Body(...),
                    u: SessionUser = Depends(current_user)):
    video = deps.project_service().complete_video_upload(
        project_id, video_id, u.user_id, body.upload_id, body.parts
    )
    return {"success": True, "message": "Upload completed successfully", "video": video}

@router.delete("/projects/{project_id}/videos/{video_id}/upload", status_code=200)
def abort_upload(project_id: str, video_id: str, body: AbortUploadRequest = Body(...),
                 u: SessionUser = Depends(current_user)):
    video = deps.project_service().abort_video_upload(
        project_id, video_id, u.user_id, body.upload_id, body.reason
    )
    return {"success": True, "message": "Upload aborted", "video": video}

# ---------- owner review / publish ----------
@router.post("/videos/{video_id}/approval", status_code=200)
def set_approval(video_id: str, body: ApprovalRequest = Body(...), u: SessionUser = Depends(current_user)):
    video = deps.project_service().set_approval(video_id, u.user_id, body.is_approved, body.message)
    return {"success": True, "video": video}

@router.post("/videos/{video_id}/publish", status_code=200)
def publish_video(video_id: str, u: SessionUser = Depends(current_user)):
    video = deps.publisher().publish(video_id, u.user_id)
    return {"success": True, "message": "Video published", "video": video}
