"""
The page the client runs in: current location, navigation and window events.

The API client only needs three things from its host: the current path (to
decide whether a 401 should send the user to the login screen), a way to
navigate, and a place to broadcast ``auth:unauthorized`` so other code (the
auth session, caches) can react without depending on the client.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable

UNAUTHORIZED_EVENT = "auth:unauthorized"
NAVIGATE_EVENT = "navigate"

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class Browser:
    def __init__(self, path: str = "/") -> None:
        self.path = path
        self.history: list[str] = []
        self.scheduled: list[str] = []
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    # ── Events ────────────────────────────────────────────────────────────────

    def add_event_listener(self, name: str, listener: Listener) -> None:
        self._listeners[name].append(listener)

    def remove_event_listener(self, name: str, listener: Listener) -> None:
        listeners = self._listeners[name]
        if listener in listeners:
            listeners.remove(listener)

    def dispatch_event(self, name: str, detail: Any = None) -> None:
        # Copy: listeners may unsubscribe while being called.
        for listener in list(self._listeners[name]):
            listener(detail)

    # ── Navigation ────────────────────────────────────────────────────────────

    def navigate(self, path: str) -> None:
        """Load *path*. Everything held in memory by the page starts over."""
        logger.info("navigate from=%s to=%s", self.path, path)
        self.path = path
        self.history.append(path)
        self.dispatch_event(NAVIGATE_EVENT, path)

    def schedule_navigation(self, path: str, delay: float) -> asyncio.TimerHandle:
        """Navigate to *path* after *delay* seconds on the running loop."""
        self.scheduled.append(path)
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self.navigate, path)
