# viewtuber/api/routes/editors.py
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from viewtuber import deps
from viewtuber.auth.userctx import current_user
from viewtuber.models.schemas import SessionUser, UpdatePermissionsRequest

router = APIRouter(prefix="/projects/{project_id}/editors", tags=["editors"])

@router.get("", status_code=200)
def list_editors(
    project_id: str,
    editor_id: Optional[str] = Query(None, description="Restrict to one editor"),
    u: SessionUser = Depends(current_user),
):
    editors = deps.project_service().list_editors(project_id, u.user_id, editor_id)
    return {"success": True, "data": editors}

@router.get("/{editor_id}/permissions", status_code=200)
def get_permissions(project_id: str, editor_id: str, u: SessionUser = Depends(current_user)):
    permissions = deps.project_service().get_editor_permissions(project_id, u.user_id, editor_id)
    return {"success": True, "permissions": permissions}

@router.put("/{editor_id}/permissions", status_code=200)
def update_permissions(
    project_id: str,
    editor_id: str,
    body: UpdatePermissionsRequest = Body(...),
    u: SessionUser = Depends(current_user),
):
    permissions = deps.project_service().update_editor_permissions(
        project_id, u.user_id, editor_id, body.permissions
    )
    return {"success": True, "message": "Permissions updated successfully", "permissions": permissions}
