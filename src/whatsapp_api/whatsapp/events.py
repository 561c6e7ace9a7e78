"""
Minimal asyncio event emitter.

Sockets publish their state through an EventEmitter; the lifecycle
controller and the connection waiter observe it with on()/off().
Listeners may be plain callables or coroutine functions and are run
one at a time, in registration order.
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from ..logger import logger

Listener = Callable[[Any], Awaitable[None] | None]

CONNECTION_UPDATE = "connection.update"
CREDS_UPDATE = "creds.update"
MESSAGES_UPSERT = "messages.upsert"


class EventEmitter:
    """Named-event publish/subscribe hub."""

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def off(self, event: str, listener: Listener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        listeners = self._listeners.get(event)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            return
        if not listeners:
            del self._listeners[event]

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    async def emit(self, event: str, payload: Any = None) -> None:
        """
        Deliver payload to every listener of event.

        A listener that raises is logged and does not stop delivery to the
        remaining listeners.

        Args:
            event: Event name (e.g., "connection.update")
            payload: Event data passed to each listener
        """
        # Snapshot: listeners may unsubscribe themselves while running
        for listener in list(self._listeners.get(event, ())):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener for '{event}' failed: {e}", exc_info=True)
