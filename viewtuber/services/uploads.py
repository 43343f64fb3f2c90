"""
Multipart upload coordination for project videos.

The provider does the chunking and assembly; this module drives a video's
upload through its phases and keeps the persisted `upload_status` in step:

    pending -> uploading -> completed
                        \\-> failed

`completed` and `failed` are terminal for an upload. The session (storage
key, provider upload id, part count) is kept on the video document while the
upload is in flight, so a client can resume and the server can spot stale
uploads.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, List, Sequence

from viewtuber.errors import (
    InvalidUploadStateError,
    NotFoundError,
    StorageProviderError,
    UploadFinalizationError,
    ValidationError,
)
from viewtuber.models.schemas import CompletedPart, PartUrl, UploadSession

logger = logging.getLogger(__name__)

# S3 accepts part numbers 1..10000
MAX_PARTS = 10000


def _utcnow() -> datetime:
    return datetime.utcnow()


class UploadCoordinator:
    def __init__(self, db, storage, presign_ttl: int = 3600, max_workers: int = 8,
                 clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self.storage = storage
        self.presign_ttl = presign_ttl
        self.max_workers = max_workers
        self.clock = clock

    # ---------- provider-side phases ----------
    def initiate(self, storage_key: str, content_type: str, part_count: int) -> str:
        _check_part_count(part_count)
        upload_id = self.storage.initiate_multipart_upload(storage_key, content_type)
        logger.info(f"Opened multipart upload key={storage_key} parts={part_count}")
        return upload_id

    def issue_part_urls(self, storage_key: str, upload_id: str, part_count: int) -> List[PartUrl]:
        """Presign parts 1..part_count; URLs are independent so they are generated concurrently."""
        _check_part_count(part_count)
        numbers = range(1, part_count + 1)

        def _presign(n: int) -> PartUrl:
            url = self.storage.presign_upload_part(storage_key, upload_id, n, self.presign_ttl)
            return PartUrl(part_number=n, url=url)

        with ThreadPoolExecutor(max_workers=min(self.max_workers, part_count)) as pool:
            # map() yields in input order regardless of completion order
            return list(pool.map(_presign, numbers))

    def open_session(self, storage_key: str, content_type: str, part_count: int) -> UploadSession:
        upload_id = self.initiate(storage_key, content_type, part_count)
        parts = self.issue_part_urls(storage_key, upload_id, part_count)
        return UploadSession(
            storage_key=storage_key,
            upload_id=upload_id,
            parts=parts,
            object_url=self.storage.object_url(storage_key),
        )

    # ---------- persisted phases ----------
    def begin(self, video_id: str, session: UploadSession) -> None:
        """Attach an opened session to a pending video: pending -> uploading."""
        res = self.db.videos.update_one(
            {"_id": video_id, "upload_status": "pending"},
            {"$set": {
                "upload_status": "uploading",
                "filename": session.storage_key,
                "upload_session": {
                    "storage_key": session.storage_key,
                    "upload_id": session.upload_id,
                    "part_count": len(session.parts),
                    "started_at": self.clock(),
                },
                "updated_at": self.clock(),
            }},
        )
        if res.matched_count == 0:
            raise InvalidUploadStateError("Video is not awaiting an upload")
        logger.info(f"Video {video_id} uploading (upload_id={session.upload_id})")

    def complete(self, video_id: str, upload_id: str, parts: Sequence[CompletedPart]) -> dict:
        """
        Finalize the object, then mark the video completed.

        Nothing is written unless the provider accepted the part list.
        """
        video = self.db.videos.find_one({"_id": video_id})
        session = (video or {}).get("upload_session") or {}
        if not video or video.get("upload_status") != "uploading" or session.get("upload_id") != upload_id:
            raise NotFoundError("No upload in progress for this video")

        expected = list(range(1, session["part_count"] + 1))
        numbers = sorted(p.part_number for p in parts)
        if numbers != expected:
            raise UploadFinalizationError(
                f"Expected parts 1..{session['part_count']}, got {len(parts)} part(s)"
            )

        key = session["storage_key"]
        provider_parts = [
            {"PartNumber": p.part_number, "ETag": p.etag}
            for p in sorted(parts, key=lambda p: p.part_number)
        ]
        try:
            self.storage.complete_multipart_upload(key, upload_id, provider_parts)
        except StorageProviderError as e:
            raise UploadFinalizationError() from e

        url = self.storage.object_url(key)
        self.db.videos.update_one(
            {"_id": video_id},
            {"$set": {"upload_status": "completed", "url": url, "updated_at": self.clock()},
             "$unset": {"upload_session": ""}},
        )
        logger.info(f"Video {video_id} upload completed at {url}")
        return self.db.videos.find_one({"_id": video_id})

    def abort(self, video_id: str, upload_id: str, reason: str = None) -> dict:
        """Abort an in-flight upload: uploading -> failed."""
        video = self.db.videos.find_one({"_id": video_id})
        session = (video or {}).get("upload_session") or {}
        if not video or video.get("upload_status") != "uploading" or session.get("upload_id") != upload_id:
            raise NotFoundError("No upload in progress for this video")

        self.storage.abort_multipart_upload(session["storage_key"], upload_id)
        self.db.videos.update_one(
            {"_id": video_id},
            {"$set": {
                "upload_status": "failed",
                "failure_reason": reason or "Upload aborted",
                "updated_at": self.clock(),
            }, "$unset": {"upload_session": ""}},
        )
        logger.info(f"Video {video_id} upload aborted")
        return self.db.videos.find_one({"_id": video_id})


def _check_part_count(part_count) -> None:
    if isinstance(part_count, bool) or not isinstance(part_count, int) or part_count < 1:
        raise ValidationError("Part count must be a positive integer")
    if part_count > MAX_PARTS:
        raise ValidationError(f"Part count must not exceed {MAX_PARTS}")
