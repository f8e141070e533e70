"""Event bus owned by one pipeline: named events, subscriber list."""

from __future__ import annotations

import logging
from typing import Any, Callable

log = logging.getLogger(__name__)

# Event callback: (event_name, data) -> None
EventCallback = Callable[[str, dict[str, Any]], None]


class Events:
    WILL_START = "will.start"
    DID_BUILD = "did.build"
    DID_TEST = "did.test"
    DID_ARCHIVE = "did.archive"
    DID_EXPORT = "did.export"
    DID_DEPLOY = "did.deploy"
    WILL_MONITOR = "will.monitor"

    ACTIVITY_DID_LAUNCH = "activity.did.launch"
    ACTIVITY_DID_EXIT_SUCCESSFULLY = "activity.did.exit.successfully"
    ACTIVITY_ERROR = "activity.error"


class EventBus:
    """Delivers published events synchronously, in publish order.

    Subscribers register for one event name or, with ``name=None``, for all of
    them. A subscriber that raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str | None, list[EventCallback]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: EventCallback, name: str | None = None) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._subscribers.setdefault(name, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(name, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def publish(self, name: str, data: dict[str, Any] | None = None) -> None:
        if self._closed:
            log.debug("Event bus closed, dropping %s", name)
            return
        payload = dict(data or {})
        callbacks = list(self._subscribers.get(name, [])) + list(self._subscribers.get(None, []))
        for callback in callbacks:
            try:
                callback(name, dict(payload))
            except Exception:
                log.exception("Subscriber failed handling %s", name)

    def close(self) -> None:
        self._closed = True
        self._subscribers.clear()
