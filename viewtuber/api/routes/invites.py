# viewtuber/api/routes/invites.py
from fastapi import APIRouter, Body, Depends

from viewtuber import deps
from viewtuber.auth.userctx import current_user
from viewtuber.models.schemas import AcceptInviteRequest, InviteRequest, SessionUser

router = APIRouter(prefix="/projects/{project_id}/invites", tags=["invites"])

@router.post("", status_code=201)
def invite_member(project_id: str, body: InviteRequest = Body(...), u: SessionUser = Depends(current_user)):
    """Email an invitation; only the project owner can invite."""
    member = deps.invitation_service().issue(project_id, u.user_id, body.email, body.role, body.permissions)
    return {
        "success": True,
        "message": "Invitation email sent successfully",
        "member_id": member["_id"],
        "expires_at": member["invite_code_expiry"],
    }

@router.post("/accept", status_code=200)
def accept_invite(project_id: str, body: AcceptInviteRequest = Body(...), u: SessionUser = Depends(current_user)):
    member = deps.invitation_service().accept(project_id, body.email, body.invite_code, u.user_id)
    return {
        "success": True,
        "message": "Project invitation accepted successfully",
        "member_id": member["_id"],
        "role": member["role"],
    }
