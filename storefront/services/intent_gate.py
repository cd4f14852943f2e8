from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import HTTPException, status

from storefront.core import metrics
from storefront.core.config import settings
from storefront.schemas.intent import (
    ActionKind,
    AuthEntry,
    IntentCaptureRead,
    IntentPromptRead,
    IntentState,
    PendingIntent,
    ProductRef,
)
from storefront.services import wishlist as wishlist_service
from storefront.services.intent_flow import IntentEvent, IntentFlow
from storefront.services.intent_store import PendingIntentStore

logger = logging.getLogger(__name__)

_ACTION_TEXT = {
    ActionKind.purchase: "add items to cart",
    ActionKind.wishlist: "save items to your wishlist",
}


def auth_entry_url(entry: AuthEntry, redirect_target: str) -> str:
    path = settings.auth_register_path if entry == AuthEntry.register else settings.auth_login_path
    return f"{path}?{urlencode({'redirect': redirect_target})}"


class IntentCaptureGate:
    """Defers a gated storefront action of a guest until they have signed in.

    Only ever constructed for sessions already known to be unauthenticated; the gate never
    calls the cart or wishlist itself.
    """

    def __init__(self, store: PendingIntentStore, state: IntentState = IntentState.idle) -> None:
        self.store = store
        self.flow = IntentFlow(store.session_id, state)
        self._committed = state == IntentState.intent_persisted

    @classmethod
    async def for_session(cls, store: PendingIntentStore) -> "IntentCaptureGate":
        intent = await store.load()
        return cls(store, IntentState.intent_persisted if intent else IntentState.idle)

    @property
    def state(self) -> IntentState:
        return self.flow.state

    def _check_action(self, action_kind: ActionKind) -> None:
        if action_kind == ActionKind.wishlist:
            wishlist_service.ensure_enabled()

    def prompt(self, action_kind: ActionKind, product: ProductRef, redirect_target: str | None = None) -> IntentPromptRead:
        self._check_action(action_kind)
        target = redirect_target or settings.default_landing_path
        self.flow.advance(IntentEvent.prompt)
        return IntentPromptRead(
            state=self.state,
            action_kind=action_kind,
            product=product,
            message=f"Create a free account to {_ACTION_TEXT[action_kind]} and complete your purchase",
            login_url=auth_entry_url(AuthEntry.login, target),
            register_url=auth_entry_url(AuthEntry.register, target),
        )

    async def open(
        self,
        action_kind: ActionKind,
        product: ProductRef,
        redirect_target: str | None = None,
        entry: AuthEntry = AuthEntry.login,
    ) -> IntentCaptureRead:
        self._check_action(action_kind)
        intent = PendingIntent(
            action_kind=action_kind,
            product=product,
            redirect_target=redirect_target or settings.default_landing_path,
        )
        previous = self.state
        self.flow.advance(IntentEvent.capture)
        try:
            await self.store.save(intent)
        except Exception:
            self.flow.state = previous
            raise
        self._committed = True
        metrics.record_intent_captured()
        logger.info(
            "intent_captured",
            extra={
                "session_id": self.store.session_id,
                "action_kind": action_kind.value,
                "product_id": str(product.id),
                "entry": entry.value,
            },
        )
        return IntentCaptureRead(
            state=self.state,
            session_id=self.store.session_id,
            intent=intent,
            auth_url=auth_entry_url(entry, intent.redirect_target),
        )

    async def cancel(self) -> None:
        previous = self.state
        self.flow.advance(IntentEvent.cancel)
        if previous == IntentState.prompt_open and not self._committed:
            return
        await self.store.clear()
        committed, self._committed = self._committed, False
        if committed:
            metrics.record_intent_cancelled()
            logger.info("intent_cancelled", extra={"session_id": self.store.session_id})


def ensure_guest(current_user: object | None) -> None:
    if current_user is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already authenticated")
