from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional, Literal, Dict, Any

Role = Literal["youtuber", "editor"]
MemberStatus = Literal["pending", "accepted"]
UploadStatus = Literal["pending", "uploading", "completed", "failed"]
VideoKind = Literal["raw", "edited"]

# Video fields a member may change through a field update
EDITABLE_VIDEO_FIELDS = (
    "title",
    "description",
    "tags",
    "category",
    "privacy_status",
    "thumbnail",
    "publish_at",
)


class SessionUser(BaseModel):
    user_id: str
    email: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class PartUrl(BaseModel):
    part_number: int
    url: str


class UploadSession(BaseModel):
    storage_key: str
    upload_id: str
    parts: List[PartUrl]
    object_url: str


class CompletedPart(BaseModel):
    part_number: int = Field(..., ge=1, alias="PartNumber")
    etag: str = Field(..., alias="ETag")

    class Config:
        populate_by_name = True


# ---------- Request Models ----------
class SessionRequest(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    image: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class CreateProjectRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    requirements: Optional[str] = None
    deadline: Optional[datetime] = None
    file_part_count: Optional[int] = Field(None, ge=0, le=10000)
    content_type: str = "video/mp4"


class UpdateProjectRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class InviteRequest(BaseModel):
    email: EmailStr
    role: Role
    # e.g. ["video.title:write", "video.description:read", "project.requirements:read"]
    permissions: Optional[List[str]] = None


class AcceptInviteRequest(BaseModel):
    email: EmailStr
    invite_code: str = Field(..., min_length=1)


class UpdatePermissionsRequest(BaseModel):
    permissions: List[str]


class UpdateVideoRequest(BaseModel):
    updates: Dict[str, Any]


class EditedVideoRequest(BaseModel):
    filename: str = Field(..., min_length=1)
    content_type: str
    parts: int = Field(..., ge=1, le=10000)


class CompleteUploadRequest(BaseModel):
    upload_id: str
    parts: List[CompletedPart]


class AbortUploadRequest(BaseModel):
    upload_id: str
    reason: Optional[str] = None


class ApprovalRequest(BaseModel):
    is_approved: bool
    message: Optional[str] = None
