"""
Password hashing and bearer-token helpers
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config.settings import settings
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_DEV_JWT_SECRET = "dev-only-insecure-secret"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def _jwt_secret() -> str:
    if settings.jwt_secret:
        return settings.jwt_secret
    if settings.environment == "production":
        raise ConfigurationError("JWT_SECRET is not configured")
    logger.warning("[AUTH] JWT_SECRET not set; using development secret")
    return _DEV_JWT_SECRET


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    now = utc_now()
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, _jwt_secret(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Return the user id carried by a valid token"""
    try:
        payload = jwt.decode(token, _jwt_secret(), algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise AuthenticationError("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")
    return str(user_id)


async def get_current_user_id(request: Request) -> str:
    """FastAPI dependency: user id from the Authorization: Bearer header"""
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise AuthenticationError("Unauthorized")

    token = auth.replace("Bearer ", "", 1).strip()
    if not token:
        raise AuthenticationError("Unauthorized")
    return decode_access_token(token)
