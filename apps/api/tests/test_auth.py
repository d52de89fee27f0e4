import time

import pytest
from jose import jwt

from config import settings
from conftest import ADMIN_HEADER, USER_A_HEADER, USER_B_HEADER
from models.user import User
from services.authorization import resolve_role
from services.session_token import (
    SESSION_TOKEN_ISSUER,
    SESSION_TOKEN_TYPE,
    create_session_token,
    decode_session_token,
)


def test_session_token_round_trip_lowercases_email():
    issued = create_session_token("user-a", "A@Example.com")
    claims = decode_session_token(issued["token"])
    assert claims.user_id == "user-a"
    assert claims.email == "a@example.com"


def test_expired_session_token_is_rejected():
    now = int(time.time())
    token = jwt.encode(
        {
            "sub": "user-a",
            "iss": SESSION_TOKEN_ISSUER,
            "type": SESSION_TOKEN_TYPE,
            "iat": now - 7200,
            "exp": now - 3600,
        },
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(ValueError, match="expired"):
        decode_session_token(token)


def test_token_with_wrong_type_is_rejected():
    token = jwt.encode(
        {"sub": "user-a", "iss": SESSION_TOKEN_ISSUER, "type": "refresh", "exp": int(time.time()) + 60},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(ValueError, match="type"):
        decode_session_token(token)


def test_role_resolution_uses_profile_then_allowlist(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAILS", ["Ops@Example.com"])
    assert resolve_role(User(id="1", email="x@example.com", role="admin"), None) == "admin"
    assert resolve_role(None, "ops@example.com") == "admin"
    assert resolve_role(User(id="2", email="b@example.com", role="user"), "b@example.com") == "user"
    assert resolve_role(None, None) == "user"


@pytest.mark.asyncio
async def test_me_reports_role(api_client, monkeypatch):
    client, _ = api_client
    monkeypatch.setattr(settings, "ADMIN_EMAILS", ["b@example.com"])

    me = (await client.get("/auth/me", headers=USER_A_HEADER)).json()
    assert me["user_id"] == "user-a"
    assert me["full_name"] == "Ada Analyst"
    assert me["is_admin"] is False

    assert (await client.get("/auth/me", headers=ADMIN_HEADER)).json()["role"] == "admin"
    assert (await client.get("/auth/me", headers=USER_B_HEADER)).json()["is_admin"] is True


@pytest.mark.asyncio
async def test_me_rejects_bad_tokens(api_client):
    client, _ = api_client
    assert (await client.get("/auth/me")).status_code == 401
    response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
