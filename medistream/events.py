"""In-process publish/subscribe channel for dataset change events."""

import logging
import threading
from typing import Callable, List

from .models import ChangeEvent

logger = logging.getLogger(__name__)

Handler = Callable[[ChangeEvent], None]


class ChangeEventBus:
    """
    Broadcasts ChangeEvents to every subscriber.

    Publishing is synchronous: handlers run on the publisher's thread, in
    subscription order. A handler that raises is logged and skipped; the
    remaining handlers still receive the event.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: List[Handler] = []
        self._disposed = False

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """
        Register ``handler`` for every future event.

        Returns:
            A callable that unsubscribes the handler.
        """
        with self._lock:
            if self._disposed:
                raise RuntimeError("ChangeEventBus has been disposed")
            self._handlers.append(handler)
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            handlers = list(self._handlers)
        logger.debug(f"Publishing {event.kind} change (+{event.delta}, total {event.count}) to {len(handlers)} subscriber(s)")
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Change event handler {handler!r} failed: {e}", exc_info=True)

    def dispose(self) -> None:
        with self._lock:
            self._handlers.clear()
            self._disposed = True
