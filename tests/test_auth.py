"""
Unit tests for JWT authentication
"""

import pytest
from datetime import timedelta
import uuid

from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from chalkboard.core.auth import create_access_token, decode_access_token, verify_token
from chalkboard.core.config import get_settings
from chalkboard.core.dependencies import get_current_identity, get_current_staff_id
from chalkboard.core.errors import UnauthorizedError

settings = get_settings()


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_create_access_token():
    """Test JWT token creation"""
    staff_id = uuid.uuid4()

    token = create_access_token(staff_id, "cashier", expires_delta=timedelta(hours=8))

    assert isinstance(token, str)
    payload = verify_token(token)
    assert payload["sub"] == str(staff_id)
    assert payload["role"] == "cashier"
    assert "exp" in payload
    assert "iat" in payload


def test_decode_valid_token():
    staff_id = uuid.uuid4()
    payload = decode_access_token(create_access_token(staff_id, "admin"))

    assert payload is not None
    assert payload["sub"] == str(staff_id)


def test_verify_invalid_token():
    assert verify_token("invalid.token.string.here") is None


def test_expired_token():
    """Tokens past their expiry are rejected"""
    token = create_access_token(uuid.uuid4(), "staff", expires_delta=timedelta(hours=-1))
    assert verify_token(token) is None


def test_token_signed_with_other_key():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "role": "admin"}, "another-secret", algorithm=settings.JWT_ALGORITHM
    )
    assert verify_token(token) is None


def test_token_without_staff_claims():
    """A validly signed token still needs a UUID subject and a role"""
    no_role = jwt.encode({"sub": str(uuid.uuid4())}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    bad_subject = jwt.encode(
        {"sub": "staff-1", "role": "admin"}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )

    assert verify_token(no_role) is None
    assert verify_token(bad_subject) is None


@pytest.mark.asyncio
async def test_get_current_identity():
    staff_id = uuid.uuid4()
    identity = await get_current_identity(bearer(create_access_token(staff_id, "manager")))

    assert identity.staff_id == staff_id
    assert identity.role == "manager"
    assert await get_current_staff_id(identity) == staff_id


@pytest.mark.asyncio
async def test_missing_or_bad_credentials_look_the_same():
    for credentials in (None, bearer("garbage")):
        with pytest.raises(UnauthorizedError) as exc_info:
            await get_current_identity(credentials)
        assert exc_info.value.to_dict() == {"kind": "unauthorized", "message": "Unauthorized"}
