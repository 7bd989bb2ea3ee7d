"""
JWT Authentication utilities
"""

from datetime import timedelta
from jose import JWTError, jwt
from typing import Dict, Optional
import uuid

from chalkboard.core.config import get_settings
from chalkboard.core.datetime_utils import utcnow

settings = get_settings()


def create_access_token(
    staff_id: uuid.UUID,
    role: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token with staff claims"""
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(staff_id),
        "role": role,
        "exp": expire,
        "iat": utcnow(),
    }

    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict]:
    """Decode and validate JWT token, None when invalid or expired"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def verify_token(token: str) -> Optional[Dict]:
    """Verify token and return its claims if they identify a staff member"""
    payload = decode_access_token(token)
    if payload is None or not payload.get("sub") or not payload.get("role"):
        return None

    try:
        uuid.UUID(payload["sub"])
    except ValueError:
        return None
    return payload
