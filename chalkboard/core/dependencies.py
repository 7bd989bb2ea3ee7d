"""
Authentication dependencies for FastAPI
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import SQLModel
from typing import Optional
import uuid
import structlog

from chalkboard.core.auth import verify_token
from chalkboard.core.errors import UnauthorizedError

logger = structlog.get_logger(__name__)
security = HTTPBearer(auto_error=False)


class Identity(SQLModel):
    """Authenticated caller as asserted by the bearer token"""
    staff_id: uuid.UUID
    role: str


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Identity:
    """Resolve the caller from the bearer token; every failure looks the same"""
    if credentials is None:
        raise UnauthorizedError()

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedError()

    identity = Identity(staff_id=uuid.UUID(payload["sub"]), role=payload["role"])
    logger.debug(f"Staff authenticated: {identity.staff_id}")
    return identity


async def get_current_staff_id(
    identity: Identity = Depends(get_current_identity)
) -> uuid.UUID:
    """Get current staff ID from JWT token"""
    return identity.staff_id
