import asyncio
import os
from collections.abc import Generator

import pytest
from sqlalchemy.ext import asyncio as sa_asyncio

# Keep pytest output high-signal by disabling outbound Sentry capture in tests.
os.environ["SENTRY_DSN"] = ""
os.environ.setdefault("REDIS_URL", "")

from storefront.api.v1 import auth as auth_api
from storefront.api.v1 import intents as intents_api
from storefront.core import metrics
from storefront.core.config import settings
from storefront.services.intent_store import reset_memory_backend


_TRACKED_ENGINES: list[sa_asyncio.AsyncEngine] = []
_ORIGINAL_CREATE_ASYNC_ENGINE = sa_asyncio.create_async_engine


def _tracked_create_async_engine(*args, **kwargs):  # type: ignore[no-untyped-def]
    engine = _ORIGINAL_CREATE_ASYNC_ENGINE(*args, **kwargs)
    _TRACKED_ENGINES.append(engine)
    return engine


sa_asyncio.create_async_engine = _tracked_create_async_engine  # type: ignore[assignment]


@pytest.fixture(autouse=True)
def _dispose_tracked_async_engines() -> Generator[None, None, None]:
    start_index = len(_TRACKED_ENGINES)
    yield
    pending = _TRACKED_ENGINES[start_index:]
    if not pending:
        return

    async def _dispose_all() -> None:
        for engine in pending:
            try:
                await engine.dispose()
            except Exception:
                continue

    asyncio.run(_dispose_all())
    del _TRACKED_ENGINES[start_index:]


def _rate_limit_dependencies():
    return (
        auth_api.login_rate_limit,
        auth_api.register_rate_limit,
        auth_api.refresh_rate_limit,
        intents_api.capture_rate_limit,
    )


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    # Rate-limit buckets, intent slots and counters are process-global.
    monkeypatch.setattr(settings, "redis_url", None)
    monkeypatch.setattr(settings, "wishlist_enabled", True)
    for dep in _rate_limit_dependencies():
        dep.buckets.clear()
    reset_memory_backend()
    metrics.reset()
    yield
    for dep in _rate_limit_dependencies():
        dep.buckets.clear()
    reset_memory_backend()
    metrics.reset()
