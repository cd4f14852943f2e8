from __future__ import annotations

import enum
import logging

from storefront.schemas.intent import IntentState

logger = logging.getLogger(__name__)


class IntentEvent(str, enum.Enum):
    prompt = "prompt"
    capture = "capture"
    cancel = "cancel"
    resume = "resume"


class IllegalIntentTransition(Exception):
    def __init__(self, state: IntentState, event: IntentEvent) -> None:
        super().__init__(f"Cannot {event.value} a deferred action in state {state.value}")
        self.state = state
        self.event = event


_TERMINAL = (IntentState.idle, IntentState.cancelled, IntentState.resumed)

TRANSITIONS: dict[tuple[IntentState, IntentEvent], IntentState] = {
    (IntentState.prompt_open, IntentEvent.prompt): IntentState.prompt_open,
    (IntentState.prompt_open, IntentEvent.capture): IntentState.intent_persisted,
    (IntentState.prompt_open, IntentEvent.cancel): IntentState.cancelled,
    (IntentState.intent_persisted, IntentEvent.prompt): IntentState.prompt_open,
    (IntentState.intent_persisted, IntentEvent.capture): IntentState.intent_persisted,
    (IntentState.intent_persisted, IntentEvent.cancel): IntentState.cancelled,
    (IntentState.intent_persisted, IntentEvent.resume): IntentState.resumed,
}
for _state in _TERMINAL:
    TRANSITIONS[(_state, IntentEvent.prompt)] = IntentState.prompt_open
    TRANSITIONS[(_state, IntentEvent.capture)] = IntentState.intent_persisted
    TRANSITIONS[(_state, IntentEvent.cancel)] = _state


def next_state(state: IntentState, event: IntentEvent) -> IntentState:
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise IllegalIntentTransition(state, event) from None


class IntentFlow:
    """Tracks where one guest session is in the prompt/capture/resume cycle."""

    def __init__(self, session_id: str | None, state: IntentState = IntentState.idle) -> None:
        self.session_id = session_id
        self.state = state

    def advance(self, event: IntentEvent) -> IntentState:
        previous = self.state
        self.state = next_state(previous, event)
        if previous != self.state:
            logger.debug(
                "intent_transition",
                extra={"session_id": self.session_id, "from_state": previous.value, "to_state": self.state.value},
            )
        return self.state
