"""Single-slot, guest-session scoped persistence for deferred actions.

Each guest session owns exactly one slot. Writes overwrite, reads fail open: a slot that
cannot be read or parsed behaves as if it were empty so a broken value can neither block
the storefront nor trigger a replay.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Callable, Protocol

from pydantic import ValidationError

from storefront.core import metrics
from storefront.core.config import settings
from storefront.core.redis_client import get_redis
from storefront.schemas.intent import PendingIntent

logger = logging.getLogger(__name__)

KEY_PREFIX = "pending_intent"


class IntentStoreUnavailable(RuntimeError):
    """The backing store rejected a write or delete."""


class IntentBackend(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def pop(self, key: str) -> str | None: ...


class MemoryIntentBackend:
    """Per-process slots with expiry, used when Redis is not configured."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._slots: dict[str, tuple[str, float]] = {}
        self._lock = Lock()
        self._clock = clock

    def _live(self, key: str) -> str | None:
        entry = self._slots.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._slots[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        with self._lock:
            return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._slots[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._slots.pop(key, None)

    async def pop(self, key: str) -> str | None:
        with self._lock:
            value = self._live(key)
            self._slots.pop(key, None)
            return value

    def clear_all(self) -> None:
        with self._lock:
            self._slots.clear()


class RedisIntentBackend:
    def __init__(self, client: Any) -> None:
        self._client = client

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def pop(self, key: str) -> str | None:
        return await self._client.getdel(key)


_memory_backend = MemoryIntentBackend()


def get_intent_backend() -> IntentBackend:
    client = get_redis()
    if client is not None:
        return RedisIntentBackend(client)
    return _memory_backend


def reset_memory_backend() -> None:
    """Helper for tests to drop every in-process slot."""
    _memory_backend.clear_all()


class PendingIntentStore:
    def __init__(
        self,
        session_id: str,
        backend: IntentBackend | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        if not session_id:
            raise ValueError("session_id is required")
        self.session_id = session_id
        self.backend = backend if backend is not None else get_intent_backend()
        self.ttl_seconds = int(ttl_seconds if ttl_seconds is not None else settings.pending_intent_ttl_seconds)

    @property
    def key(self) -> str:
        return f"{KEY_PREFIX}:{self.session_id}"

    async def save(self, intent: PendingIntent) -> None:
        try:
            await self.backend.set(self.key, intent.model_dump_json(), self.ttl_seconds)
        except Exception as exc:
            logger.warning("pending_intent_save_failed", extra={"session_id": self.session_id, "error": str(exc)})
            raise IntentStoreUnavailable("Pending intent could not be saved") from exc

    async def load(self) -> PendingIntent | None:
        try:
            raw = await self.backend.get(self.key)
        except Exception as exc:
            logger.warning("pending_intent_read_failed", extra={"session_id": self.session_id, "error": str(exc)})
            return None
        return self._decode(raw)

    async def clear(self) -> None:
        try:
            await self.backend.delete(self.key)
        except Exception as exc:
            logger.warning("pending_intent_clear_failed", extra={"session_id": self.session_id, "error": str(exc)})
            raise IntentStoreUnavailable("Pending intent could not be cleared") from exc

    async def take(self) -> PendingIntent | None:
        """Atomically read and empty the slot."""
        try:
            raw = await self.backend.pop(self.key)
        except Exception as exc:
            logger.warning("pending_intent_read_failed", extra={"session_id": self.session_id, "error": str(exc)})
            return None
        return self._decode(raw)

    def _decode(self, raw: str | bytes | None) -> PendingIntent | None:
        if raw is None:
            return None
        try:
            intent = PendingIntent.model_validate_json(raw)
        except (ValidationError, ValueError, TypeError):
            metrics.record_intent_corrupt()
            logger.warning("pending_intent_corrupt", extra={"session_id": self.session_id})
            return None
        created_at = intent.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        if created_at + timedelta(seconds=self.ttl_seconds) <= datetime.now(timezone.utc):
            logger.info("pending_intent_expired", extra={"session_id": self.session_id})
            return None
        return intent
