from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticationSucceeded:
    user: User
    session: AsyncSession
    guest_session_id: str | None
    method: str = "login"


AuthHandler = Callable[[AuthenticationSucceeded], Awaitable[Any]]


class AuthEventBus:
    """Fan-out point for "a visitor just signed in" notifications."""

    def __init__(self) -> None:
        self._handlers: list[AuthHandler] = []

    def subscribe(self, handler: AuthHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: AuthHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def handlers(self) -> tuple[AuthHandler, ...]:
        return tuple(self._handlers)

    async def publish(self, event: AuthenticationSucceeded) -> list[Any]:
        results: list[Any] = []
        for handler in list(self._handlers):
            try:
                results.append(await handler(event))
            except Exception:
                logger.exception(
                    "auth_event_handler_failed",
                    extra={"handler": getattr(handler, "__qualname__", repr(handler)), "user_id": str(event.user.id)},
                )
        return results


bus = AuthEventBus()
