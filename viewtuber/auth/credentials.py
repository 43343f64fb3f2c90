# viewtuber/auth/credentials.py
"""Platform (Google) OAuth credentials and refresh-on-expiry."""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

import httpx

from viewtuber.errors import CredentialRefreshError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.utcnow()


@dataclass(frozen=True)
class PlatformCredential:
    user_id: str
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[datetime]


class GoogleTokenRefresher:
    def __init__(self, client_id: str, client_secret: str,
                 token_url: str = "https://oauth2.googleapis.com/token",
                 transport: Optional[httpx.BaseTransport] = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self._transport = transport

    def refresh(self, refresh_token: str) -> dict:
        """Exchange a refresh token; returns the token endpoint's JSON."""
        try:
            with httpx.Client(transport=self._transport, timeout=10.0) as client:
                resp = client.post(self.token_url, data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                })
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error refreshing access token: {e}")
            raise CredentialRefreshError() from e
        return resp.json()


class CredentialCache:
    """
    Hands out a credential that is valid now, refreshing it through the
    refresher when its expiry (minus `skew_seconds`) has passed. Refreshed
    tokens are written back to the user's document.
    """

    def __init__(self, db, refresher, skew_seconds: int = 60, clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self.refresher = refresher
        self.skew = timedelta(seconds=skew_seconds)
        self.clock = clock

    def load(self, user_id: str) -> PlatformCredential:
        user = self.db.users.find_one({"_id": user_id}) or {}
        return PlatformCredential(
            user_id=user_id,
            access_token=user.get("access_token"),
            refresh_token=user.get("refresh_token"),
            expires_at=user.get("expires_at"),
        )

    def get_valid(self, credential: PlatformCredential) -> PlatformCredential:
        now = self.clock()
        if credential.expires_at is not None and credential.expires_at - self.skew > now:
            return credential
        if not credential.refresh_token:
            # Nothing to refresh with; the platform decides whether it still works
            return credential

        data = self.refresher.refresh(credential.refresh_token)
        if not data.get("access_token"):
            raise CredentialRefreshError()

        fresh = replace(
            credential,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or credential.refresh_token,
            expires_at=now + timedelta(seconds=int(data.get("expires_in", 3600))),
        )
        self.db.users.update_one(
            {"_id": credential.user_id},
            {"$set": {
                "access_token": fresh.access_token,
                "refresh_token": fresh.refresh_token,
                "expires_at": fresh.expires_at,
                "updated_at": now,
            }},
        )
        logger.info(f"Refreshed platform credential for user {credential.user_id}")
        return fresh
