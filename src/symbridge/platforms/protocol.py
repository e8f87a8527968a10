"""Host framework boundary: the robot capability and event emission."""

import asyncio
import functools
import inspect
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from symbridge.platforms.models import TextMessage

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Minimal named-event emitter.

    Listeners may be plain callables or coroutine functions; coroutines are
    scheduled on the running loop so ``emit`` never blocks the caller.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def on(self, event: str, listener: Listener) -> Listener:
        """Register a listener for an event.

        Returns:
            The listener, so this can be used as a decorator.
        """
        self._listeners[event].append(listener)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Register a listener that is removed after its first call."""

        def wrapper(*args: Any) -> Any:
            self.off(event, wrapper)
            return listener(*args)

        return self.on(event, wrapper)

    def off(self, event: str, listener: Listener) -> None:
        """Remove a listener if registered."""
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener registered for ``event``.

        Returns:
            True if at least one listener was registered.
        """
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._pending.add(task)
                    task.add_done_callback(functools.partial(self._listener_done, event))
            except Exception as e:
                logger.error(f"Listener for '{event}' raised: {e}", exc_info=True)
        return bool(listeners)

    def _listener_done(self, event: str, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Listener for '{event}' raised: {error}", exc_info=error)


class Robot(EventEmitter, ABC):
    """Abstract base class for the chat-bot host.

    The adapter forwards decoded inbound messages through ``receive`` and
    reports asynchronous failures with ``emit("error", exc)``.
    """

    def __init__(self, name: str = "hubot", alias: str | None = None) -> None:
        super().__init__()
        self.name = name
        self.alias = alias

    @abstractmethod
    def receive(self, message: TextMessage) -> None:
        """Handle a message delivered by the adapter."""
        ...
