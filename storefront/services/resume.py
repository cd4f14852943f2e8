from __future__ import annotations

import logging
import uuid
from typing import Awaitable, Callable

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import metrics
from storefront.core.config import settings
from storefront.models.user import User
from storefront.schemas.intent import ActionKind, IntentState, PendingIntent, ResumeOutcome, ResumeStatus
from storefront.services import cart as cart_service
from storefront.services import catalog as catalog_service
from storefront.services import wishlist as wishlist_service
from storefront.services.auth_events import AuthenticationSucceeded
from storefront.services.intent_flow import IntentEvent, IntentFlow
from storefront.services.intent_store import PendingIntentStore

logger = logging.getLogger(__name__)

UNAVAILABLE_NOTICE = "That item is no longer available."


async def _add_to_cart(session: AsyncSession, user_id: uuid.UUID, product_id: uuid.UUID) -> None:
    await cart_service.add_to_cart(session, user_id, product_id, quantity=1)


async def _add_to_wishlist(session: AsyncSession, user_id: uuid.UUID, product_id: uuid.UUID) -> None:
    await wishlist_service.add_to_wishlist(session, user_id, product_id)


Mutation = Callable[[AsyncSession, uuid.UUID, uuid.UUID], Awaitable[None]]

_MUTATIONS: dict[ActionKind, Mutation] = {
    ActionKind.purchase: _add_to_cart,
    ActionKind.wishlist: _add_to_wishlist,
}

_DONE_NOTICE = {
    ActionKind.purchase: "{name} was added to your cart.",
    ActionKind.wishlist: "{name} was saved to your wishlist.",
}

_FAILED_NOTICE = {
    ActionKind.purchase: "We couldn't add {name} to your cart. Please try again.",
    ActionKind.wishlist: "We couldn't save {name} to your wishlist. Please try again.",
}


class ResumeCoordinator:
    """Replays the action a guest deferred before signing in, at most once.

    The slot is emptied before the replay starts, so a duplicated authentication event, a
    retry or a second tab finds nothing left to do. A failed replay is reported, never retried
    from the stored intent.
    """

    def __init__(self, session: AsyncSession, store: PendingIntentStore | None) -> None:
        self.session = session
        self.store = store

    async def on_authentication_success(self, user: User) -> ResumeOutcome:
        intent = await self.store.take() if self.store is not None else None
        flow = IntentFlow(
            self.store.session_id if self.store is not None else None,
            IntentState.intent_persisted if intent is not None else IntentState.idle,
        )
        if intent is None:
            return ResumeOutcome(
                status=ResumeStatus.nothing_pending, state=flow.state, redirect_to=settings.default_landing_path
            )

        # Only an intent that was actually taken out of the slot may move to resumed.
        flow.advance(IntentEvent.resume)
        log_extra = {
            "session_id": self.store.session_id,
            "user_id": str(user.id),
            "action_kind": intent.action_kind.value,
            "product_id": str(intent.product.id),
        }

        try:
            product = await catalog_service.get_resolvable_product(self.session, intent.product.id)
        except Exception:
            logger.exception("intent_resume_lookup_failed", extra=log_extra)
            return await self._failed(intent, flow.state)
        if product is None:
            metrics.record_intent_unavailable()
            logger.info("intent_product_unavailable", extra=log_extra)
            return ResumeOutcome(
                status=ResumeStatus.product_unavailable,
                state=flow.state,
                redirect_to=settings.default_landing_path,
                action_kind=intent.action_kind,
                product=intent.product,
                notice=UNAVAILABLE_NOTICE,
            )

        try:
            await _MUTATIONS[intent.action_kind](self.session, user.id, product.id)
        except HTTPException as exc:
            logger.warning("intent_resume_failed", extra={**log_extra, "detail": str(exc.detail)})
            return await self._failed(intent, flow.state)
        except Exception:
            logger.exception("intent_resume_failed", extra=log_extra)
            return await self._failed(intent, flow.state)

        metrics.record_intent_resumed()
        logger.info("intent_resumed", extra=log_extra)
        return ResumeOutcome(
            status=ResumeStatus.resumed,
            state=flow.state,
            redirect_to=intent.redirect_target,
            action_kind=intent.action_kind,
            product=intent.product,
            notice=_DONE_NOTICE[intent.action_kind].format(name=intent.product.name),
        )

    async def _failed(self, intent: PendingIntent, state: IntentState) -> ResumeOutcome:
        metrics.record_intent_resume_failure()
        await self.session.rollback()
        return ResumeOutcome(
            status=ResumeStatus.failed,
            state=state,
            redirect_to=intent.redirect_target,
            action_kind=intent.action_kind,
            product=intent.product,
            notice=_FAILED_NOTICE[intent.action_kind].format(name=intent.product.name),
        )


async def handle_authentication_success(event: AuthenticationSucceeded) -> ResumeOutcome:
    """Auth event subscriber wired up by the application factory."""
    store = PendingIntentStore(event.guest_session_id) if event.guest_session_id else None
    return await ResumeCoordinator(event.session, store).on_authentication_success(event.user)
