"""YouTube Data API v3 client (resumable video upload, channel lookup)."""
import logging
from typing import Any, Dict, Iterator, Optional

import httpx

from viewtuber.errors import ExternalProviderError, PlatformPublishError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8 * 1024 * 1024


def _iter_stream(stream, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        yield chunk


def build_video_resource(video: Dict[str, Any]) -> Dict[str, Any]:
    """Map a stored video document onto the YouTube `videos` resource."""
    publish_at = video.get("publish_at")
    status = {
        "privacyStatus": video.get("privacy_status") or "private",
        "selfDeclaredMadeForKids": bool(video.get("made_for_kids", False)),
    }
    if publish_at is not None:
        status["publishAt"] = publish_at.isoformat() + "Z" if publish_at.tzinfo is None else publish_at.isoformat()
    snippet = {
        "title": video.get("title") or "",
        "description": video.get("description") or "",
        "tags": video.get("tags") or [],
    }
    if video.get("category"):
        snippet["categoryId"] = video["category"]
    return {"snippet": snippet, "status": status}


class YouTubeClient:
    def __init__(
        self,
        api_url: str = "https://www.googleapis.com/youtube/v3",
        upload_url: str = "https://www.googleapis.com/upload/youtube/v3/videos",
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.upload_url = upload_url
        self._transport = transport

    def _client(self, access_token: str, timeout=None) -> httpx.Client:
        return httpx.Client(
            transport=self._transport,
            timeout=timeout,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )

    def insert_video(self, access_token: str, metadata: Dict[str, Any], media, content_type: str = "video/*") -> Dict[str, str]:
        """
        Upload `media` (a readable binary stream) with the given `videos`
        resource body using the resumable protocol.

        Returns {"platform_video_id", "channel_id"}.
        """
        try:
            # No timeout on the media leg, videos can be large
            with self._client(access_token, timeout=None) as client:
                init = client.post(
                    self.upload_url,
                    params={"uploadType": "resumable", "part": "snippet,status"},
                    json=metadata,
                    headers={"X-Upload-Content-Type": content_type},
                )
                init.raise_for_status()
                session_url = init.headers.get("Location")
                if not session_url:
                    raise PlatformPublishError("YouTube did not open an upload session")

                resp = client.put(session_url, content=_iter_stream(media), headers={"Content-Type": content_type})
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            logger.error(f"YouTube upload failed: {e}")
            raise PlatformPublishError(f"YouTube upload failed: {e}") from e

        return {
            "platform_video_id": data.get("id"),
            "channel_id": (data.get("snippet") or {}).get("channelId"),
        }

    def get_channel(self, access_token: str) -> Optional[Dict[str, Any]]:
        try:
            with self._client(access_token, timeout=10.0) as client:
                resp = client.get(f"{self.api_url}/channels", params={"part": "snippet,statistics", "mine": "true"})
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch channel details: {e}")
            raise ExternalProviderError("Failed to fetch channel details") from e
        items = resp.json().get("items") or []
        return items[0] if items else None
