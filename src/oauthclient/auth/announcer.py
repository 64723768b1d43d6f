"""Process-wide notification channel for irrecoverable session loss.

The refresh coordinator publishes here; the rest of the application (CLI,
UI state holders) subscribes and decides how to react — clear local state,
show a message, navigate to the landing page.  The event carries no payload.
"""

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

SESSION_EXPIRED_EVENT = "auth:session-expired"

SessionListener = Callable[[], None]


class SessionAnnouncer:
    """Publish point for the session-expired signal.

    Listeners are zero-argument callables.  Delivery is fire-and-forget:
    every listener is called once per :meth:`announce`, in subscription
    order, and a listener that raises is logged and skipped so it can
    neither block the others nor leak into the HTTP layer.
    """

    event_type = SESSION_EXPIRED_EVENT

    def __init__(self):
        self._listeners: list[SessionListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register *listener* and return a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: SessionListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def announce(self) -> int:
        """Deliver the session-expired signal to every listener.

        Returns:
            The number of listeners that were notified.
        """
        with self._lock:
            listeners = list(self._listeners)
        logger.warning("Session expired; notifying %d listener(s)", len(listeners))
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Session-expired listener %r failed", listener)
        return len(listeners)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


# Shared channel for applications that want a single process-wide announcer.
default_announcer = SessionAnnouncer()
