"""EventBus — synchronous pub/sub for the map view's event loop.

The parameter store, overlay fetcher and session controller talk through
this bus. Everything runs on one event loop thread, so handlers are invoked
inline, in subscription order, before ``publish`` returns. A handler that
publishes again is dispatched depth-first.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Callable

from loguru import logger

Handler = Callable[[dict], None]

WILDCARD = "*"


class EventBus:
    """Simple in-process pub/sub keyed by event type."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Handler) -> Handler:
        """Register ``handler`` for ``event_type`` ("*" receives everything).

        Returns the handler so callers can keep it for ``unsubscribe``.
        """
        self._subscribers[event_type].append(handler)
        return handler

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        try:
            self._subscribers[event_type].remove(handler)
        except ValueError:
            pass

    def publish(self, event_type: str, data: dict | None = None) -> None:
        msg = {"type": event_type}
        if data is not None:
            msg["data"] = data
        handlers = list(self._subscribers.get(event_type, ()))
        handlers.extend(self._subscribers.get(WILDCARD, ()))
        logger.debug(f"event {event_type} -> {len(handlers)} handler(s)")
        for handler in handlers:
            handler(msg)
