"""
Project / member / video aggregate.

All mutations are gated here: ownership for project-level changes, and the
member's field-level grants for video changes.
"""
import logging
import re
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from pymongo.errors import DuplicateKeyError

from viewtuber.core.permissions import ALL, PermissionSet, filter_permitted_fields, validate_grants
from viewtuber.errors import (
    AuthorizationError,
    ConflictError,
    EmailDeliveryError,
    NotFoundError,
    StateError,
    ValidationError,
)
from viewtuber.models.schemas import EDITABLE_VIDEO_FIELDS, CompletedPart, SessionUser
from viewtuber.services.uploads import UploadCoordinator

logger = logging.getLogger(__name__)

MEMBER_FIELDS = {"_id": 1, "user_id": 1, "email": 1, "role": 1, "status": 1, "permissions": 1}


def _utcnow() -> datetime:
    return datetime.utcnow()

def _pid() -> str:
    return f"p_{uuid.uuid4().hex[:10]}"

def _mid() -> str:
    return f"m_{uuid.uuid4().hex[:10]}"

def _vid() -> str:
    return f"v_{uuid.uuid4().hex[:10]}"

def _millis() -> int:
    return int(time.time() * 1000)

def _safe_key_part(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "-", value).strip("-") or "video"


class ProjectService:
    def __init__(self, db, uploads: UploadCoordinator, mailer=None,
                 clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self.uploads = uploads
        self.mailer = mailer
        self.clock = clock

    # ---------- lookups ----------
    def _project(self, project_id: str) -> dict:
        prj = self.db.projects.find_one({"_id": project_id})
        if not prj:
            raise NotFoundError("Project not found")
        return prj

    def _owned_project(self, project_id: str, user_id: str) -> dict:
        prj = self._project(project_id)
        if prj["owner_id"] != user_id:
            raise AuthorizationError("Only the project owner can do this")
        return prj

    def _video(self, project_id: str, video_id: str) -> dict:
        video = self.db.videos.find_one({"_id": video_id, "project_id": project_id})
        if not video:
            raise NotFoundError("Video not found")
        return video

    def membership(self, project_id: str, user_id: str) -> dict:
        member = self.db.members.find_one({"project_id": project_id, "user_id": user_id, "status": "accepted"})
        if not member:
            raise AuthorizationError("Not authorized for this project")
        return member

    # ---------- projects ----------
    def create_project(
        self,
        owner: SessionUser,
        name: str,
        description: Optional[str] = None,
        requirements: Optional[str] = None,
        deadline: Optional[datetime] = None,
        file_part_count: Optional[int] = None,
        content_type: str = "video/mp4",
    ) -> dict:
        """
        Create a project owned by `owner`.

        With a positive `file_part_count` the raw footage upload is opened
        first; if the provider refuses, nothing is written.
        """
        if not name:
            raise ValidationError("Project name is missing")
        if self.db.projects.find_one({"owner_id": owner.user_id, "name": name}, {"_id": 1}):
            raise ConflictError("Project already exists")

        session = None
        if file_part_count:
            key = f"{owner.user_id}/projects/{_safe_key_part(name)}-{_millis()}"
            session = self.uploads.open_session(key, content_type, file_part_count)

        now = self.clock()
        project = {
            "_id": _pid(),
            "name": name,
            "description": description,
            "requirements": requirements,
            "deadline": deadline,
            "owner_id": owner.user_id,
            "key": session.storage_key if session else None,
            "edited_video_id": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self.db.projects.insert_one(project)
        except DuplicateKeyError:
            raise ConflictError("Project already exists")

        self.db.members.insert_one({
            "_id": _mid(),
            "project_id": project["_id"],
            "user_id": owner.user_id,
            "email": owner.email,
            "role": "youtuber",
            "status": "accepted",
            "invite_code": None,
            "invite_code_expiry": None,
            "permissions": [ALL],
            "created_at": now,
        })

        video = None
        if session:
            video = self._new_video(project["_id"], title=name, kind="raw")
            self.uploads.begin(video["_id"], session)
            video = self.db.videos.find_one({"_id": video["_id"]})

        logger.info(f"Created project {project['_id']} for {owner.user_id}")
        return {"project": project, "video": video, "upload": session.model_dump() if session else None}

    def _new_video(self, project_id: str, title: str, kind: str, source_video_id: str = None, **extra) -> dict:
        now = self.clock()
        video = {
            "_id": _vid(),
            "project_id": project_id,
            "kind": kind,
            "source_video_id": source_video_id,
            "title": title,
            "description": None,
            "tags": [],
            "category": None,
            "privacy_status": "private",
            "url": None,
            "thumbnail": None,
            "filename": None,
            "is_approved": False,
            "failure_reason": None,
            "upload_status": "pending",
            "publish_at": None,
            "channel_id": None,
            "platform_video_id": None,
            "created_at": now,
            "updated_at": now,
        }
        video.update(extra)
        self.db.videos.insert_one(video)
        return video

    def get_project(self, project_id: str, user_id: str) -> dict:
        prj = self._project(project_id)
        if prj["owner_id"] != user_id:
            self.membership(project_id, user_id)
        prj["members"] = list(self.db.members.find({"project_id": project_id}, MEMBER_FIELDS))
        prj["videos"] = list(self.db.videos.find({"project_id": project_id}, {"upload_session": 0}))
        return prj

    def list_projects(self, user_id: str) -> List[dict]:
        """Projects the user owns or has accepted an invitation to."""
        rows = self.db.members.find({"user_id": user_id, "status": "accepted"}, {"project_id": 1, "role": 1})
        roles = {m["project_id"]: m["role"] for m in rows}
        if not roles:
            return []
        cur = self.db.projects.find({"_id": {"$in": list(roles)}}, {"_id": 1, "name": 1, "deadline": 1, "created_at": 1})
        return [{"project_id": p["_id"], "name": p["name"], "deadline": p.get("deadline"),
                 "role": roles[p["_id"]], "created_at": p.get("created_at")} for p in cur]

    def update_project(self, project_id: str, user_id: str, name: str, description: Optional[str] = None) -> dict:
        if not name:
            raise ValidationError("Project name is missing")
        self._owned_project(project_id, user_id)
        try:
            self.db.projects.update_one(
                {"_id": project_id},
                {"$set": {"name": name, "description": description, "updated_at": self.clock()}},
            )
        except DuplicateKeyError:
            raise ConflictError("Project already exists")
        return self._project(project_id)

    def delete_project(self, project_id: str, user_id: str) -> dict:
        """Owner-only hard delete; members and videos go with the project."""
        self._owned_project(project_id, user_id)
        members_deleted = int(self.db.members.delete_many({"project_id": project_id}).deleted_count or 0)
        videos_deleted = int(self.db.videos.delete_many({"project_id": project_id}).deleted_count or 0)
        self.db.projects.delete_one({"_id": project_id})
        logger.info(
            f"Deleted project {project_id} (members={members_deleted}, videos={videos_deleted})"
        )
        return {"project_id": project_id, "counts": {"members": members_deleted, "videos": videos_deleted}}

    # ---------- editors ----------
    def list_editors(self, project_id: str, user_id: str, editor_id: Optional[str] = None) -> List[dict]:
        self.get_project(project_id, user_id)
        query = {"project_id": project_id, "role": "editor", "status": "accepted"}
        if editor_id:
            query["user_id"] = editor_id
        editors = list(self.db.members.find(query, MEMBER_FIELDS))
        if editor_id and not editors:
            raise NotFoundError("Editor not found in this project")
        return editors

    def get_editor_permissions(self, project_id: str, user_id: str, editor_id: str) -> List[str]:
        return self.list_editors(project_id, user_id, editor_id)[0]["permissions"]

    def update_editor_permissions(self, project_id: str, user_id: str, editor_id: str, permissions: List[str]) -> List[str]:
        self._owned_project(project_id, user_id)
        grants = validate_grants(permissions)
        res = self.db.members.update_many(
            {"project_id": project_id, "user_id": editor_id, "role": "editor", "status": "accepted"},
            {"$set": {"permissions": grants}},
        )
        if res.matched_count == 0:
            raise NotFoundError("Editor not found or not accepted")
        logger.info(f"Updated permissions of {editor_id} on project {project_id}: {grants}")
        return grants

    # ---------- videos ----------
    def update_video(self, project_id: str, video_id: str, user_id: str, updates: Dict[str, Any]) -> dict:
        """
        Apply the subset of `updates` the caller may write, in one write.

        Returns the names of the applied fields and the updated video.
        """
        if not updates:
            raise ValidationError("No fields to update")
        unknown = sorted(set(updates) - set(EDITABLE_VIDEO_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown video field(s): {', '.join(unknown)}")

        member = self.membership(project_id, user_id)
        video = self._video(project_id, video_id)
        if member["role"] == "editor" and video.get("is_approved"):
            raise StateError("Approved videos can no longer be edited")

        allowed = filter_permitted_fields(member.get("permissions", []), "video", updates)
        self.db.videos.update_one(
            {"_id": video_id, "project_id": project_id},
            {"$set": {**allowed, "updated_at": self.clock()}},
        )
        rejected = sorted(set(updates) - set(allowed))
        if rejected:
            logger.info(f"Dropped unpermitted fields {rejected} for {user_id} on video {video_id}")
        return {"updated_fields": list(allowed), "video": self._video(project_id, video_id)}

    def _require_upload_right(self, project_id: str, user_id: str) -> dict:
        member = self.membership(project_id, user_id)
        if not PermissionSet(member.get("permissions", [])).allows("video", "write", "upload"):
            raise AuthorizationError("No permission to upload edited video")
        return member

    def submit_edited_video(self, project_id: str, source_video_id: str, user_id: str,
                            filename: str, content_type: str, parts: int) -> dict:
        """Open the upload of an edited cut of `source_video_id` as a new video."""
        self._require_upload_right(project_id, user_id)
        source = self._video(project_id, source_video_id)

        key = f"edited-videos/{project_id}/{source_video_id}/{_millis()}-{_safe_key_part(filename)}"
        session = self.uploads.open_session(key, content_type, parts)

        video = self._new_video(
            project_id,
            title=source.get("title"),
            kind="edited",
            source_video_id=source_video_id,
            description=source.get("description"),
            tags=source.get("tags") or [],
            category=source.get("category"),
            submitted_by=user_id,
        )
        self.uploads.begin(video["_id"], session)
        logger.info(f"{user_id} started edited cut {video['_id']} of video {source_video_id}")
        return {"video_id": video["_id"], **session.model_dump()}

    def complete_video_upload(self, project_id: str, video_id: str, user_id: str,
                              upload_id: str, parts: Sequence[CompletedPart]) -> dict:
        project = self._project(project_id)
        if project["owner_id"] != user_id:
            self._require_upload_right(project_id, user_id)
        self._video(project_id, video_id)

        video = self.uploads.complete(video_id, upload_id, parts)
        if video.get("kind") == "edited":
            self.db.projects.update_one(
                {"_id": project_id},
                {"$set": {"edited_video_id": video_id, "updated_at": self.clock()}},
            )
            self._notify_submission(project, user_id)
        return video

    def abort_video_upload(self, project_id: str, video_id: str, user_id: str,
                           upload_id: str, reason: Optional[str] = None) -> dict:
        project = self._project(project_id)
        if project["owner_id"] != user_id:
            self._require_upload_right(project_id, user_id)
        self._video(project_id, video_id)
        return self.uploads.abort(video_id, upload_id, reason)

    def _notify_submission(self, project: dict, editor_id: str) -> None:
        if self.mailer is None:
            return
        owner = self.db.users.find_one({"_id": project["owner_id"]}, {"email": 1})
        editor = self.db.users.find_one({"_id": editor_id}, {"name": 1, "email": 1}) or {}
        if not owner or not owner.get("email"):
            return
        try:
            self.mailer.send_editor_submission(
                owner["email"], project["name"], editor.get("name") or editor.get("email") or "An editor"
            )
        except EmailDeliveryError as e:
            # The upload itself succeeded; the notice is informational
            logger.warning(f"Submission email for project {project['_id']} not sent: {e}")

    def set_approval(self, video_id: str, user_id: str, is_approved: bool, message: Optional[str] = None) -> dict:
        video = self.db.videos.find_one({"_id": video_id})
        if not video:
            raise NotFoundError("Video not found")
        self._owned_project(video["project_id"], user_id)
        self.db.videos.update_one(
            {"_id": video_id},
            {"$set": {
                "is_approved": is_approved,
                # Disapproval message is kept for the editor
                "failure_reason": None if is_approved else message,
                "updated_at": self.clock(),
            }},
        )
        logger.info(f"Video {video_id} approval set to {is_approved}")
        return self.db.videos.find_one({"_id": video_id})
