"""Publishing approved project videos to the owner's YouTube channel."""
import logging
from contextlib import closing
from datetime import datetime
from typing import Callable

from viewtuber.auth.credentials import CredentialCache
from viewtuber.errors import (
    AuthorizationError,
    CollabError,
    InvalidUploadStateError,
    NoPlatformCredentialError,
    NotFoundError,
    PlatformPublishError,
    VideoNotApprovedError,
)
from viewtuber.integrations.youtube import build_video_resource

logger = logging.getLogger(__name__)

PUBLISHABLE_STATUSES = ("completed", "failed")


def _utcnow() -> datetime:
    return datetime.utcnow()


class Publisher:
    def __init__(self, db, storage, youtube, credentials: CredentialCache,
                 clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self.storage = storage
        self.youtube = youtube
        self.credentials = credentials
        self.clock = clock

    def publish(self, video_id: str, caller_id: str) -> dict:
        """
        Upload a stored, approved video to YouTube.

        Preconditions are checked before anything external is contacted.
        Once the platform call starts, the outcome is always written back:
        completed with the platform ids, or failed with the reason.
        """
        video = self.db.videos.find_one({"_id": video_id})
        if not video:
            raise NotFoundError("Video not found")
        project = self.db.projects.find_one({"_id": video["project_id"]})
        if not project:
            raise NotFoundError("Project not found")
        if project["owner_id"] != caller_id:
            raise AuthorizationError("Only the project owner can publish")

        if not video.get("is_approved"):
            raise VideoNotApprovedError()
        credential = self.credentials.load(project["owner_id"])
        if not credential.access_token:
            raise NoPlatformCredentialError()
        if not video.get("filename") or video.get("upload_status") not in PUBLISHABLE_STATUSES:
            raise InvalidUploadStateError("Video has no stored upload to publish")

        self._set(video_id, {"upload_status": "uploading", "failure_reason": None})
        logger.info(f"Publishing video {video_id} for project {project['_id']}")
        try:
            credential = self.credentials.get_valid(credential)
            with closing(self.storage.open_object(video["filename"])) as media:
                result = self.youtube.insert_video(credential.access_token, build_video_resource(video), media)
        except Exception as e:
            # The caller sees the error; the next read of the video must too
            self._set(video_id, {"upload_status": "failed", "failure_reason": str(e)})
            logger.error(f"Publishing video {video_id} failed: {e}", exc_info=True)
            if isinstance(e, CollabError):
                raise
            raise PlatformPublishError() from e

        self._set(video_id, {
            "upload_status": "completed",
            "platform_video_id": result.get("platform_video_id"),
            "channel_id": result.get("channel_id"),
            "published_at": self.clock(),
        })
        logger.info(f"Published video {video_id} as {result.get('platform_video_id')}")
        return self.db.videos.find_one({"_id": video_id})

    def _set(self, video_id: str, fields: dict) -> None:
        fields["updated_at"] = self.clock()
        self.db.videos.update_one({"_id": video_id}, {"$set": fields})
