from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from storefront.core.config import settings
from storefront.core.dependencies import (
    get_current_user_optional,
    guest_session_header,
    new_guest_session_id,
)
from storefront.core.rate_limit import client_ip, per_identifier_limiter
from storefront.models.user import User
from storefront.schemas.intent import (
    IntentCaptureRead,
    IntentCaptureRequest,
    IntentPromptRead,
    IntentPromptRequest,
    IntentSlotRead,
    IntentState,
)
from storefront.services.intent_gate import IntentCaptureGate, ensure_guest
from storefront.services.intent_store import IntentStoreUnavailable, PendingIntentStore

router = APIRouter(prefix="/intents", tags=["intents"])


def _session_or_ip(request: Request) -> str:
    return request.headers.get("x-session-id") or client_ip(request)


capture_rate_limit = per_identifier_limiter("intents:capture", _session_or_ip, settings.intent_rate_limit_capture, 60)


def _store_unavailable() -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Please try again in a moment")


@router.post("/prompt", response_model=IntentPromptRead)
async def open_prompt(
    payload: IntentPromptRequest,
    response: Response,
    current_user: User | None = Depends(get_current_user_optional),
    session_id: str | None = Depends(guest_session_header),
) -> IntentPromptRead:
    ensure_guest(current_user)
    session_id = session_id or new_guest_session_id()
    gate = IntentCaptureGate(PendingIntentStore(session_id))
    response.headers["X-Session-Id"] = session_id
    return gate.prompt(payload.action_kind, payload.product, payload.redirect_target)


@router.post("", response_model=IntentCaptureRead, status_code=status.HTTP_201_CREATED)
async def capture_intent(
    payload: IntentCaptureRequest,
    response: Response,
    current_user: User | None = Depends(get_current_user_optional),
    session_id: str | None = Depends(guest_session_header),
    _: None = Depends(capture_rate_limit),
) -> IntentCaptureRead:
    ensure_guest(current_user)
    session_id = session_id or new_guest_session_id()
    gate = IntentCaptureGate(PendingIntentStore(session_id))
    try:
        captured = await gate.open(payload.action_kind, payload.product, payload.redirect_target, payload.entry)
    except IntentStoreUnavailable:
        raise _store_unavailable()
    response.headers["X-Session-Id"] = session_id
    return captured


@router.get("", response_model=IntentSlotRead)
async def read_intent(session_id: str | None = Depends(guest_session_header)) -> IntentSlotRead:
    if not session_id:
        return IntentSlotRead(state=IntentState.idle)
    intent = await PendingIntentStore(session_id).load()
    return IntentSlotRead(
        session_id=session_id,
        state=IntentState.intent_persisted if intent else IntentState.idle,
        intent=intent,
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_intent(session_id: str | None = Depends(guest_session_header)) -> None:
    if not session_id:
        return None
    gate = await IntentCaptureGate.for_session(PendingIntentStore(session_id))
    try:
        await gate.cancel()
    except IntentStoreUnavailable:
        raise _store_unavailable()
    return None

