"""Listener registry used in place of ad hoc ``on_x = fn`` callbacks."""

import logging
from typing import Any, Callable, Hashable

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """
    Subscribe/unsubscribe registry keyed by event.

    Any number of listeners may be attached to one event; they are called in
    subscription order. Events emitted while nobody listens are dropped.
    """

    def __init__(self):
        self._listeners: dict[Hashable, list[Listener]] = {}

    def subscribe(self, event: Hashable, listener: Listener) -> Callable[[], None]:
        """Attach a listener. Returns a callable that detaches it again."""
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(event, listener)

        return unsubscribe

    def unsubscribe(self, event: Hashable, listener: Listener) -> bool:
        """Detach a listener. Returns False if it was not attached."""
        listeners = self._listeners.get(event)
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        if not listeners:
            del self._listeners[event]
        return True

    def emit(self, event: Hashable, *args: Any) -> int:
        """Call every listener of ``event`` with ``args``.

        Returns the number of listeners called. Listener exceptions propagate
        to the emitter's caller.
        """
        listeners = list(self._listeners.get(event, ()))
        if not listeners:
            logger.debug("No listener for %s, event dropped", event)
            return 0
        for listener in listeners:
            listener(*args)
        return len(listeners)

    def listener_count(self, event: Hashable) -> int:
        return len(self._listeners.get(event, ()))

    def clear(self) -> None:
        self._listeners.clear()
