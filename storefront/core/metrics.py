from collections import Counter
from threading import Lock
from typing import Dict, Counter as CounterType

_metrics: CounterType[str] = Counter()
_lock = Lock()


def _inc(key: str) -> None:
    with _lock:
        _metrics[key] += 1


def record_signup() -> None:
    _inc("signups")


def record_login_success() -> None:
    _inc("logins")


def record_login_failure() -> None:
    _inc("login_failures")


def record_intent_captured() -> None:
    _inc("intents_captured")


def record_intent_cancelled() -> None:
    _inc("intents_cancelled")


def record_intent_resumed() -> None:
    _inc("intents_resumed")


def record_intent_unavailable() -> None:
    _inc("intents_unavailable")


def record_intent_resume_failure() -> None:
    _inc("intent_resume_failures")


def record_intent_corrupt() -> None:
    _inc("intents_corrupt")


def snapshot() -> Dict[str, int]:
    with _lock:
        return dict(_metrics)


def reset() -> None:
    with _lock:
        _metrics.clear()
