"""
Lightweight event bus for session-to-collaborator notifications.

Each detection session owns its own bus; there is no process-wide
instance. Listeners run on whichever thread publishes the event. A
consumer that needs results on its own thread should read from a
``channel()`` queue instead of registering a plain callback.

Usage:
    bus = EventBus()
    unsubscribe = bus.subscribe(Events.RESULT, my_handler)
    bus.emit(Events.RESULT, prediction=prediction)
"""

import time
import queue
import logging
import threading
from collections import defaultdict, deque
from typing import Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Thread-safe publish/subscribe event bus.

    Synchronous dispatch with priority ordering. A failing listener is
    logged and skipped so it can never break the frame loop.
    """

    def __init__(self, max_history: int = 100):
        self._listeners = defaultdict(list)  # event_name -> [(priority, callback)]
        self._lock = threading.Lock()
        self._event_history = deque(maxlen=max_history)
        self._enabled = True

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0) -> Callable:
        """Register a listener for an event.

        Args:
            event_name: Event to listen for
            callback: Function to call. Receives **kwargs from emit().
            priority: Higher priority callbacks run first (default 0)

        Returns:
            Zero-argument callable that removes the listener again.
        """
        with self._lock:
            self._listeners[event_name].append((priority, callback))
            self._listeners[event_name].sort(key=lambda x: -x[0])
        logger.debug("Subscribed to '%s': %s (priority=%d)",
                     event_name, getattr(callback, "__name__", callback), priority)

        def unsubscribe():
            self.unsubscribe(event_name, callback)

        return unsubscribe

    def unsubscribe(self, event_name: str, callback: Callable):
        """Remove a listener for an event."""
        with self._lock:
            self._listeners[event_name] = [
                (p, cb) for p, cb in self._listeners[event_name] if cb is not callback
            ]

    def channel(self, event_name: str, maxsize: int = 0) -> queue.Queue:
        """Subscribe a thread-safe queue to an event.

        Every emitted payload is put on the queue as a dict. When the
        queue is bounded and full, the payload is dropped and logged.
        """
        q = queue.Queue(maxsize=maxsize)

        def _enqueue(**kwargs):
            try:
                q.put_nowait(kwargs)
            except queue.Full:
                logger.warning("Channel for '%s' is full, dropping event", event_name)

        _enqueue.__name__ = "channel[%s]" % event_name
        self.subscribe(event_name, _enqueue)
        return q

    def emit(self, event_name: str, **kwargs):
        """Emit an event to all registered listeners.

        Args:
            event_name: Event name to emit
            **kwargs: Data passed to all listeners
        """
        if not self._enabled:
            return

        with self._lock:
            listeners = list(self._listeners.get(event_name, []))
            self._event_history.append({
                "event": event_name,
                "time": time.time(),
                "data_keys": list(kwargs.keys()),
            })

        for priority, callback in listeners:
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error("Event handler error [%s -> %s]: %s",
                             event_name, getattr(callback, "__name__", callback), e)

    def clear(self, event_name: str = None):
        """Remove all listeners, optionally for a specific event."""
        with self._lock:
            if event_name:
                self._listeners.pop(event_name, None)
            else:
                self._listeners.clear()

    def close(self):
        """Drop every listener and stop dispatching."""
        self.clear()
        self._enabled = False

    @property
    def listener_count(self) -> int:
        """Total number of registered listeners."""
        with self._lock:
            return sum(len(cbs) for cbs in self._listeners.values())

    def get_history(self, last_n: int = 10) -> list:
        """Get recent event history."""
        with self._lock:
            return list(self._event_history)[-last_n:]


# =============================================================================
# Standard Event Names (constants to avoid typos)
# =============================================================================

class Events:
    """Event names published by a detection session."""

    # Loading
    PROGRESS = "progress"
    INIT_FAILED = "init_failed"

    # Detection
    RESULT = "result"
    HISTORY_CHANGED = "history_changed"
    FRAME_DROPPED = "frame_dropped"

    # Lifecycle
    STATE_CHANGED = "state_changed"
    CAPTURE_UNAVAILABLE = "capture_unavailable"
