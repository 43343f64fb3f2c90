# viewtuber/api/routes/projects.py
from fastapi import APIRouter, Body, Depends

from viewtuber import deps
from viewtuber.auth.userctx import current_user
from viewtuber.models.schemas import CreateProjectRequest, SessionUser, UpdateProjectRequest

router = APIRouter(prefix="/projects", tags=["projects"])

# ---------- LIST MY PROJECTS ----------
@router.get("", status_code=200)
def list_my_projects(u: SessionUser = Depends(current_user)):
    return {"success": True, "projects": deps.project_service().list_projects(u.user_id)}

# ---------- GET SINGLE PROJECT ----------
@router.get("/{project_id}", status_code=200)
def get_project(project_id: str, u: SessionUser = Depends(current_user)):
    """
    Get a project with its members and videos.

    Raises:
        403: If the caller is not the owner or an accepted member
        404: If the project doesn't exist
    """
    project = deps.project_service().get_project(project_id, u.user_id)
    return {"success": True, "project": project}

# ---------- CREATE PROJECT ----------
@router.post("", status_code=201)
def create_project(body: CreateProjectRequest = Body(...), u: SessionUser = Depends(current_user)):
    """
    Create a project. When `file_part_count` is given, the response carries
    the presigned part URLs for the raw footage upload.
    """
    result = deps.project_service().create_project(
        u,
        name=body.name,
        description=body.description,
        requirements=body.requirements,
        deadline=body.deadline,
        file_part_count=body.file_part_count,
        content_type=body.content_type,
    )
    return {"success": True, "message": "Project created successfully", **result}

# ---------- UPDATE PROJECT ----------
@router.put("/{project_id}", status_code=200)
def update_project(project_id: str, body: UpdateProjectRequest = Body(...), u: SessionUser = Depends(current_user)):
    project = deps.project_service().update_project(project_id, u.user_id, body.name, body.description)
    return {"success": True, "message": "Project updated successfully", "project": project}

# ---------- HARD DELETE PROJECT (cascade) ----------
@router.delete("/{project_id}", status_code=200)
def delete_project(project_id: str, u: SessionUser = Depends(current_user)):
    result = deps.project_service().delete_project(project_id, u.user_id)
    return {"success": True, "message": "Project deleted successfully", **result}
