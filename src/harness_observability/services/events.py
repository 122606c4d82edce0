"""Synchronous fan-out of observability events to registered listeners."""

import logging
from collections.abc import Callable

from harness_observability.core.models import ObservabilityEvent

logger = logging.getLogger(__name__)

EventListener = Callable[[ObservabilityEvent], None]
# Called with the failing listener's event and exception
ListenerErrorHandler = Callable[[ObservabilityEvent, Exception], None]


class EventBus:
    """Ordered listener lists keyed by event type.

    Listeners run synchronously in registration order. A listener that
    raises is reported to ``on_error`` (or the module logger) and the
    remaining listeners still run.
    """

    def __init__(self, on_error: ListenerErrorHandler | None = None) -> None:
        self._listeners: dict[str, list[EventListener]] = {}
        self._on_error = on_error

    def add_listener(self, event_type: str, listener: EventListener) -> None:
        if not callable(listener):
            raise TypeError("listener must be callable")
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_listener(self, event_type: str, listener: EventListener) -> bool:
        """Remove the first registration of ``listener`` (matched by identity).

        Returns:
            True if a listener was removed.
        """
        listeners = self._listeners.get(event_type, [])
        for index, registered in enumerate(listeners):
            if registered is listener:
                del listeners[index]
                return True
        return False

    def emit(self, event: ObservabilityEvent) -> None:
        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners.get(event.type, ())):
            try:
                listener(event)
            except Exception as exc:
                if self._on_error is not None:
                    self._on_error(event, exc)
                else:
                    logger.exception("Event listener failed for %s event", event.type)

    def listener_types(self) -> list[str]:
        return list(self._listeners)

    def listener_count(self) -> int:
        return sum(len(listeners) for listeners in self._listeners.values())

    def clear(self) -> None:
        self._listeners.clear()
