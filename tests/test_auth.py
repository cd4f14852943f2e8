import asyncio
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from storefront.core import metrics
from storefront.core.config import settings
from storefront.db.base import Base
from storefront.db.session import get_session
from storefront.main import app


@pytest.fixture
def test_app() -> Dict[str, object]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())

    async def override_get_session():
        async with SessionLocal() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    client = TestClient(app)
    yield {"client": client, "session_factory": SessionLocal}
    client.close()
    app.dependency_overrides.clear()


def test_register_login_refresh_flow(test_app: Dict[str, object]) -> None:
    client: TestClient = test_app["client"]  # type: ignore[assignment]

    register_payload = {"email": "user@example.com", "password": "supersecret", "name": "User"}
    res = client.post("/api/v1/auth/register", json=register_payload)
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["user"]["email"] == "user@example.com"
    assert body["tokens"]["access_token"]
    assert body["tokens"]["refresh_token"]
    # Plain sign-ups land on the default page.
    assert body["resume"]["status"] == "nothing_pending"
    assert body["resume"]["redirect_to"] == settings.default_landing_path

    # Login
    login_payload = {"email": "USER@example.com", "password": "supersecret"}
    res = client.post("/api/v1/auth/login", json=login_payload)
    assert res.status_code == 200, res.text
    tokens = res.json()["tokens"]
    assert tokens["access_token"]
    assert tokens["refresh_token"]

    # Refresh
    res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 200, res.text
    refreshed = res.json()
    assert refreshed["access_token"]
    assert refreshed["refresh_token"]

    # The rotated token cannot be used twice.
    res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 401

    res = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {refreshed['access_token']}"})
    assert res.status_code == 200
    assert res.json()["email"] == "user@example.com"

    snapshot = metrics.snapshot()
    assert snapshot["signups"] == 1
    assert snapshot["logins"] == 1


def test_invalid_login_and_refresh(test_app: Dict[str, object]) -> None:
    client: TestClient = test_app["client"]  # type: ignore[assignment]

    res = client.post("/api/v1/auth/login", json={"email": "nobody@example.com", "password": "invalidpw"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid credentials"

    res = client.post("/api/v1/auth/refresh", json={"refresh_token": "not-a-token"})
    assert res.status_code == 401
    assert metrics.snapshot()["login_failures"] == 1


def test_duplicate_registration_rejected(test_app: Dict[str, object]) -> None:
    client: TestClient = test_app["client"]  # type: ignore[assignment]
    payload = {"email": "dup@example.com", "password": "supersecret"}
    assert client.post("/api/v1/auth/register", json=payload).status_code == 201
    res = client.post("/api/v1/auth/register", json=payload)
    assert res.status_code == 400
    assert res.json()["detail"] == "Email already registered"


def test_logout_revokes_refresh_token(test_app: Dict[str, object]) -> None:
    client: TestClient = test_app["client"]  # type: ignore[assignment]
    res = client.post("/api/v1/auth/register", json={"email": "bye@example.com", "password": "supersecret"})
    tokens = res.json()["tokens"]

    res = client.post(
        "/api/v1/auth/logout",
        json={"refresh_token": tokens["refresh_token"]},
        headers={"Authorization": f"Bearer {tokens['access_token']}"},
    )
    assert res.status_code == 204

    res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 401


def test_me_requires_token(test_app: Dict[str, object]) -> None:
    client: TestClient = test_app["client"]  # type: ignore[assignment]
    assert client.get("/api/v1/auth/me").status_code == 401
    res = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid token"


def test_login_is_rate_limited(test_app: Dict[str, object]) -> None:
    client: TestClient = test_app["client"]  # type: ignore[assignment]
    statuses = [
        client.post("/api/v1/auth/login", json={"email": "spam@example.com", "password": "nope"}).status_code
        for _ in range(settings.auth_rate_limit_login + 1)
    ]
    assert statuses[-1] == 429
    assert set(statuses[:-1]) == {401}
