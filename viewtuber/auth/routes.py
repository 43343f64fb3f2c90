# viewtuber/auth/routes.py
import logging
import uuid
from datetime import datetime, timedelta
from fastapi import APIRouter, Body, Depends

from viewtuber.auth.jwt import mint_token
from viewtuber.auth.userctx import current_user
from viewtuber.config import settings
from viewtuber.db.mongo import db
from viewtuber.errors import NotFoundError
from viewtuber.models.schemas import SessionRequest, SessionUser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

def _now() -> datetime: return datetime.utcnow()
def _new_user_id() -> str: return f"u_{uuid.uuid4().hex[:10]}"

@router.post("/auth/session", status_code=200)
def record_sign_in(payload: SessionRequest = Body(...)):
    """
    Record a completed Google sign-in and issue a session token.

    Creates the user on first sign-in; afterwards only the platform tokens
    (and their expiry) are refreshed.

    Stands in for the external identity provider and trusts the posted
    email, so it is disabled when APP_ENV=prod.
    """
    if settings.app_env == "prod":
        raise NotFoundError()
    now = _now()
    tokens = {
        "access_token": payload.access_token,
        "refresh_token": payload.refresh_token,
        "expires_at": now + timedelta(seconds=payload.expires_in) if payload.expires_in else None,
        "updated_at": now,
    }
    existing = db.users.find_one({"email": payload.email}, {"_id": 1})
    if existing:
        user_id = existing["_id"]
        db.users.update_one({"_id": user_id}, {"$set": tokens})
    else:
        user_id = _new_user_id()
        db.users.insert_one({
            "_id": user_id,
            "email": payload.email,
            "name": payload.name,
            "image": payload.image,
            "created_at": now,
            **tokens,
        })
        logger.info(f"Created user {user_id} for {payload.email}")
    return {"success": True, "user_id": user_id, "access_token": mint_token(user_id, payload.email), "token_type": "bearer"}

@router.get("/users/me")
def me(u: SessionUser = Depends(current_user)):
    doc = db.users.find_one({"_id": u.user_id}, {"_id": 1, "name": 1, "email": 1, "image": 1, "created_at": 1})
    return {"success": True, "user_id": u.user_id, **(doc or {})}
