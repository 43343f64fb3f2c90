# viewtuber/auth/userctx.py
from fastapi import Depends

from viewtuber.auth.jwt import bearer, decode_token
from viewtuber.db.mongo import db
from viewtuber.errors import AuthenticationError
from viewtuber.models.schemas import SessionUser

def current_user(auth=Depends(bearer)) -> SessionUser:
    """Resolve the bearer token into the authenticated caller."""
    claims = decode_token(auth)
    sub = claims.get("sub")
    if not sub:
        raise AuthenticationError("Missing 'sub' in token")

    user = db.users.find_one({"_id": sub})
    if not user:
        raise AuthenticationError("Unknown user")
    return SessionUser(
        user_id=sub,
        email=user["email"],
        access_token=user.get("access_token"),
        refresh_token=user.get("refresh_token"),
    )
