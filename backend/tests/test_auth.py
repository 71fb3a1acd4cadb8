"""Tests for bearer token issuing and verification."""

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from fastapi import HTTPException

from app.core.auth import authenticate_token, create_access_token, decode_access_token
from app.core.config import settings


class TestTokens:
    def test_round_trip(self):
        user_id = uuid.uuid4()
        token = create_access_token(user_id, "SUPER_ADMIN")
        assert decode_access_token(token) == user_id

    def test_expired(self):
        payload = {
            "sub": str(uuid.uuid4()),
            "type": "access",
            "exp": datetime.now(UTC) - timedelta(minutes=1),
        }
        token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_wrong_type(self):
        payload = {"sub": str(uuid.uuid4()), "type": "refresh"}
        token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)

    def test_wrong_secret(self):
        token = jwt.encode({"sub": str(uuid.uuid4()), "type": "access"}, "other-secret", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)


class TestAuthenticateToken:
    def test_resolves_user(self, db_session, owner_user, owner_token):
        assert authenticate_token(owner_token, db_session).id == owner_user.id

    def test_missing(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            authenticate_token(None, db_session)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Access token is required"

    def test_expired(self, db_session, owner_user):
        token = create_access_token(owner_user.id, owner_user.role, ttl_hours=-1)
        with pytest.raises(HTTPException) as exc_info:
            authenticate_token(token, db_session)
        assert exc_info.value.detail == "Access token has expired"

    def test_bad_subject(self, db_session):
        token = jwt.encode(
            {"sub": "not-a-uuid", "type": "access"},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(HTTPException) as exc_info:
            authenticate_token(token, db_session)
        assert exc_info.value.detail == "Invalid access token"
