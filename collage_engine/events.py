"""Notification channel for background subject refinement.

Refinement results are delivered to subscribers instead of being fed back
into drawing code, which keeps a render independent of work that finishes
after it.  A typical subscriber simply schedules a new ``compose`` call.
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import Callable, List

from .models import SubjectRefined

LOGGER = logging.getLogger(__name__)

Listener = Callable[[SubjectRefined], None]


class RefinementChannel:
    """Fan-out of :class:`SubjectRefined` events to registered listeners."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = RLock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* and return a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(listener)

        return _unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def publish(self, event: SubjectRefined) -> None:
        """Deliver *event* to every listener registered at call time.

        A failing listener is logged and does not stop delivery to the rest.
        """
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                LOGGER.exception("Refinement listener failed for %s", event.image_key)
