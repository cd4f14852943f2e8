import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from storefront.db.base import Base
from storefront.db.session import get_session
from storefront.main import app, get_application
from storefront.services import auth_events


@pytest.fixture
def client() -> TestClient:
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
    test_client = TestClient(app)
    yield test_client
    test_client.close()
    app.dependency_overrides.clear()


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readiness(client: TestClient) -> None:
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


def test_request_id_header(client: TestClient) -> None:
    response = client.get("/api/v1/health")
    assert response.headers.get("X-Request-ID")


def test_metrics_snapshot(client: TestClient) -> None:
    client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "nope"})
    response = client.get("/api/v1/metrics")
    assert response.status_code == 200
    assert response.json()["login_failures"] == 1


def test_error_envelope(client: TestClient) -> None:
    response = client.get("/api/v1/catalog/products/missing")
    assert response.status_code == 404
    assert response.json() == {"detail": "Product not found", "code": None}


def test_resume_handler_subscribed_once() -> None:
    get_application()
    get_application()
    names = [handler.__name__ for handler in auth_events.bus.handlers]
    assert names.count("handle_authentication_success") == 1
