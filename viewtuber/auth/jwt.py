# viewtuber/auth/jwt.py
import jwt
from datetime import datetime, timedelta, timezone
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from viewtuber.config import settings
from viewtuber.errors import AuthenticationError

JWT_ALG = "HS256"

bearer = HTTPBearer(auto_error=True)

def mint_token(sub: str, email: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.jwt_ttl_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALG)

def decode_token(auth: HTTPAuthorizationCredentials):
    token = auth.credentials
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALG])
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid token")
