from __future__ import annotations

from typing import Any, Callable, List

from .log import get_logger

log = get_logger(__name__)

STAGED_DATA_CHANGED = "staged-data-changed"

Subscriber = Callable[[str, dict], Any]


class Notifier:
    """Fire-and-forget event fan-out.

    Delivery is not guaranteed: a failing subscriber is logged and skipped,
    nothing is retried and nobody acknowledges.
    """

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def emit(self, event: str, **payload: Any) -> None:
        for cb in list(self._subscribers):
            try:
                cb(event, payload)
            except Exception as e:
                log.debug("Notification %s not delivered to %r: %s", event, cb, e)
