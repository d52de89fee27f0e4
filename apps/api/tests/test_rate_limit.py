import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from config import settings
from routers.rate_limit import rate_limit
from services.session_token import create_session_token


def _limited_app() -> FastAPI:
    limited = FastAPI()

    @limited.get("/limited", dependencies=[Depends(rate_limit("quota_check", limit=2, window_seconds=60))])
    async def limited_route():
        return {"ok": True}

    return limited


def _bearer(user_id: str, expires_hours: int = 24) -> dict:
    token = create_session_token(user_id, f"{user_id}@example.com", expires_hours=expires_hours)["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_falls_back_to_local_quota_when_redis_is_down(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", "redis://127.0.0.1:1/0")
    limited = _limited_app()

    async with AsyncClient(transport=ASGITransport(app=limited), base_url="http://test") as client:
        statuses = [(await client.get("/limited", headers=_bearer("user-a"))).status_code for _ in range(3)]
        other_caller = await client.get("/limited", headers=_bearer("user-b"))

    assert statuses == [200, 200, 429]
    assert other_caller.status_code == 200


@pytest.mark.asyncio
async def test_reissued_token_shares_the_same_quota(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", "redis://127.0.0.1:1/0")
    limited = _limited_app()
    first_token = _bearer("user-a", expires_hours=24)
    reissued_token = _bearer("user-a", expires_hours=48)
    assert first_token != reissued_token

    async with AsyncClient(transport=ASGITransport(app=limited), base_url="http://test") as client:
        first = [(await client.get("/limited", headers=first_token)).status_code for _ in range(2)]
        after_refresh = await client.get("/limited", headers=reissued_token)

    assert first == [200, 200]
    assert after_refresh.status_code == 429


@pytest.mark.asyncio
async def test_invalid_tokens_are_counted_per_address(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", "redis://127.0.0.1:1/0")
    limited = _limited_app()

    async with AsyncClient(transport=ASGITransport(app=limited), base_url="http://test") as client:
        statuses = [
            (await client.get("/limited", headers={"Authorization": f"Bearer forged-{index}"})).status_code
            for index in range(3)
        ]

    assert statuses == [200, 200, 429]


@pytest.mark.asyncio
async def test_disabled_rate_limits_skip_counting(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", "redis://127.0.0.1:1/0")
    limited = _limited_app()
    limited.state.disable_rate_limits = True

    async with AsyncClient(transport=ASGITransport(app=limited), base_url="http://test") as client:
        statuses = [(await client.get("/limited")).status_code for _ in range(4)]

    assert statuses == [200, 200, 200, 200]
