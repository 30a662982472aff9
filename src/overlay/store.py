"""
Overlay state store.

Holds the boxes that should be drawn right now. The loop controller is the
only writer; each publish replaces the whole state. The renderer reads
snapshots or subscribes to changes.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, List, Tuple

from models.detection import DisplayBox

OverlayState = Tuple[DisplayBox, ...]

EMPTY_STATE: OverlayState = ()


class OverlayStore:
    def __init__(self) -> None:
        self._state: OverlayState = EMPTY_STATE
        self._version = 0
        self._lock = threading.Lock()
        self._listeners: List[Callable[[OverlayState], None]] = []

    @property
    def version(self) -> int:
        """Number of publishes so far."""
        return self._version

    def snapshot(self) -> OverlayState:
        with self._lock:
            return self._state

    def publish(self, boxes: Iterable[DisplayBox]) -> OverlayState:
        """Replace the state with ``boxes`` and notify listeners."""
        state = tuple(boxes)
        with self._lock:
            self._state = state
            self._version += 1
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(state)
            except Exception as e:
                logging.warning(f"Overlay listener error: {e}")
        return state

    def clear(self) -> OverlayState:
        return self.publish(EMPTY_STATE)

    def subscribe(self, listener: Callable[[OverlayState], None]) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
