import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from fastapi import Cookie, Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from app.config import settings
from app.core.errors import AppError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

ACCESS_COOKIE_NAME = "accessToken"
REFRESH_COOKIE_NAME = "refreshToken"

# Used to extract token from Authorization header; the cookie is the fallback
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class TokenIdentity(BaseModel):
    """Identity claims carried by an access token."""
    id: int
    username: str
    email: str


def _encode(claims: dict, secret: str, expires_delta: timedelta) -> str:
    to_encode = claims.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


# 🔐 Create JWT Access Token
def create_access_token(user_id: int, username: str, email: str) -> str:
    return _encode(
        {"sub": str(user_id), "username": username, "email": email, "type": ACCESS_TOKEN_TYPE},
        settings.SECRET_KEY,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


# 🔁 Create JWT Refresh Token
def create_refresh_token(user_id: int) -> str:
    # jti keeps two tokens minted in the same second distinct
    return _encode(
        {"sub": str(user_id), "type": REFRESH_TOKEN_TYPE, "jti": uuid.uuid4().hex},
        settings.refresh_secret,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def _decode(token: str, secret: str, expected_type: str) -> dict:
    """
    Decode and check a token. Every failure (bad signature, expiry, wrong
    type, missing subject) becomes the same generic Unauthorized error.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.info("JWT decode failed: %s", str(e))
        raise AppError.unauthorized()

    if payload.get("type") != expected_type:
        logger.warning("JWT has wrong type: expected %s", expected_type)
        raise AppError.unauthorized()

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        logger.warning("JWT token missing usable 'sub' claim")
        raise AppError.unauthorized()

    return payload


def decode_access_token(token: str) -> TokenIdentity:
    payload = _decode(token, settings.SECRET_KEY, ACCESS_TOKEN_TYPE)
    try:
        return TokenIdentity(id=int(payload["sub"]), username=payload["username"], email=payload["email"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Access token missing identity claims")
        raise AppError.unauthorized()


def decode_refresh_token(token: str) -> int:
    """Return the user id a refresh token claims to belong to."""
    payload = _decode(token, settings.refresh_secret, REFRESH_TOKEN_TYPE)
    return int(payload["sub"])


# 👤 Extract identity from Token (no store lookup)
def get_current_user(
    bearer_token: Optional[str] = Depends(oauth2_scheme),
    access_cookie: Optional[str] = Cookie(default=None, alias=ACCESS_COOKIE_NAME),
) -> TokenIdentity:
    token = bearer_token or access_cookie
    if not token:
        raise AppError.unauthorized("Not authenticated")
    return decode_access_token(token)
