# viewtuber/api/routes/youtube.py
from fastapi import APIRouter, Depends

from viewtuber import deps
from viewtuber.auth.userctx import current_user
from viewtuber.errors import NoPlatformCredentialError
from viewtuber.models.schemas import SessionUser

router = APIRouter(prefix="/youtube", tags=["youtube"])

@router.get("/channel")
def channel_details(u: SessionUser = Depends(current_user)):
    """Channel snippet and statistics for the caller's own channel."""
    cache = deps.credential_cache()
    credential = cache.load(u.user_id)
    if not credential.access_token:
        raise NoPlatformCredentialError("No YouTube access for this account")
    credential = cache.get_valid(credential)
    return {"success": True, "channel": deps.get_youtube().get_channel(credential.access_token)}
