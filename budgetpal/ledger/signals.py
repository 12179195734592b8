"""
Refresh notification.

After a successful mutation the ledger tells whoever renders the
dashboard that its data is stale. Subscribers get the path to refresh.
"""

import threading
from typing import Callable

import structlog

logger = structlog.get_logger(__name__)

RefreshCallback = Callable[[str], None]


class RefreshSignal:
    """A list of callbacks fired with the path that changed."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: list[RefreshCallback] = []

    def subscribe(self, callback: RefreshCallback) -> Callable[[], None]:
        """
        Register `callback`.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, path: str) -> None:
        """
        Notify every subscriber.

        The mutation is already committed when this runs, so a failing
        subscriber is logged and the rest are still called.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(path)
            except Exception as e:
                logger.error("refresh_subscriber_failed", path=path, error=str(e))
