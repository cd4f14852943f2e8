import enum
from datetime import datetime, timezone
from typing import Annotated
from urllib.parse import urlsplit
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


class ActionKind(str, enum.Enum):
    purchase = "purchase"
    wishlist = "wishlist"


class AuthEntry(str, enum.Enum):
    login = "login"
    register = "register"


class IntentState(str, enum.Enum):
    idle = "idle"
    prompt_open = "prompt_open"
    intent_persisted = "intent_persisted"
    resumed = "resumed"
    cancelled = "cancelled"


class ResumeStatus(str, enum.Enum):
    resumed = "resumed"
    nothing_pending = "nothing_pending"
    product_unavailable = "product_unavailable"
    failed = "failed"


def validate_redirect_target(value: str) -> str:
    """Only in-site relative paths are accepted as post-auth destinations."""
    candidate = (value or "").strip()
    if not candidate.startswith("/") or candidate.startswith("//") or "\\" in candidate:
        raise ValueError("redirect_target must be a relative path starting with '/'")
    parts = urlsplit(candidate)
    if parts.scheme or parts.netloc:
        raise ValueError("redirect_target must be a relative path starting with '/'")
    return candidate


RedirectTarget = Annotated[str, Field(max_length=500), AfterValidator(validate_redirect_target)]


class ProductRef(BaseModel):
    """Snapshot of the product a guest tried to act on."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str = Field(min_length=1, max_length=160)
    image_url: str | None = Field(default=None, max_length=500)


class PendingIntent(BaseModel):
    action_kind: ActionKind
    product: ProductRef
    redirect_target: RedirectTarget
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class IntentPromptRequest(BaseModel):
    action_kind: ActionKind = ActionKind.purchase
    product: ProductRef
    redirect_target: RedirectTarget | None = None


class IntentCaptureRequest(IntentPromptRequest):
    entry: AuthEntry = AuthEntry.login


class IntentPromptRead(BaseModel):
    state: IntentState
    action_kind: ActionKind
    product: ProductRef
    message: str
    login_url: str
    register_url: str


class IntentCaptureRead(BaseModel):
    state: IntentState
    session_id: str
    intent: PendingIntent
    auth_url: str


class IntentSlotRead(BaseModel):
    session_id: str | None = None
    state: IntentState
    intent: PendingIntent | None = None


class ResumeOutcome(BaseModel):
    status: ResumeStatus
    state: IntentState = IntentState.idle
    redirect_to: str
    action_kind: ActionKind | None = None
    product: ProductRef | None = None
    notice: str | None = None
