"""Authentication helpers and FastAPI security dependencies.

A bearer token is verified per request and turned into a `CurrentUser`
principal. Verification goes through Firebase Admin by default; with
`AUTH_MODE=local` the token is an HS256 JWT signed with `JWT_SECRET`,
which is what local development and the test-suite use.

`get_current_user` rejects unauthenticated requests with
`AuthenticationError` (401); `get_optional_user` returns None instead so
public read endpoints can still see who is asking when a token is sent.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import firebase
from .config import settings
from .errors import AuthenticationError

logger = logging.getLogger("lnconnext.auth")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated principal for a request."""
    uid: str
    email: str
    email_verified: bool


def create_local_token(uid: str, email: str = "", email_verified: bool = False, expires_in_hours: int = 24) -> str:
    """Mint a local-mode token carrying the same claims Firebase provides."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": uid,
        "uid": uid,
        "email": email,
        "email_verified": email_verified,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=expires_in_hours)).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_local_token(token: str) -> Optional[dict]:
    """Decode and verify a local-mode JWT; None on any failure."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("local token expired")
        return None
    except jwt.InvalidTokenError as exc:
        logger.info("local token rejected: %s", exc)
        return None
    uid = payload.get("uid") or payload.get("sub")
    if not uid:
        return None
    return {
        "uid": uid,
        "email": payload.get("email") or "",
        "email_verified": bool(payload.get("email_verified", False)),
    }


def verify_token(token: str) -> Optional[CurrentUser]:
    """Verify `token` with the configured backend and build the principal."""
    if settings.AUTH_MODE == "local":
        claims = decode_local_token(token)
    else:
        claims = firebase.verify_id_token(token)
    if not claims:
        return None
    return CurrentUser(uid=claims["uid"], email=claims["email"], email_verified=claims["email_verified"])


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)) -> CurrentUser:
    """FastAPI dependency that returns the authenticated user or raises 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authorization header missing or malformed")
    user = verify_token(credentials.credentials)
    if user is None:
        raise AuthenticationError("Invalid or expired token")
    return user


def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)) -> Optional[CurrentUser]:
    """FastAPI dependency that returns the user when a valid token is sent."""
    if credentials is None or not credentials.credentials:
        return None
    return verify_token(credentials.credentials)
