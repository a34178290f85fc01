"""
Bot event bus.

Subscribers register per event class (``Opened``, ``Closed``, ``QrReady``,
``OtpReady``, ``Failed``) or consume every event in arrival order through
``stream()``.
"""

import asyncio
import inspect
import logging
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, Union

from wabot.models.events import BotEvent

logger = logging.getLogger("wabot.events")

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = {}
        self._streams: list[asyncio.Queue[Optional[BotEvent]]] = []

    def on(self, event_type: type, handler: EventHandler) -> Callable[[], None]:
        """Add a handler. Returns a cleanup function."""
        self._handlers.setdefault(event_type, []).append(handler)

        def remove() -> None:
            self.off(event_type, handler)

        return remove

    def off(self, event_type: type, handler: EventHandler) -> None:
        try:
            self._handlers.get(event_type, []).remove(handler)
        except ValueError:
            pass

    def handler_count(self, event_type: Optional[type] = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())

    def clear(self) -> None:
        """Drop every subscriber and end open streams."""
        self._handlers.clear()
        for queue in self._streams:
            queue.put_nowait(None)
        self._streams.clear()

    async def emit(self, event: BotEvent) -> None:
        for queue in list(self._streams):
            queue.put_nowait(event)
        for handler in list(self._handlers.get(type(event), [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Handler for {type(event).__name__} failed")

    def stream(self) -> AsyncGenerator[BotEvent, None]:
        """Yield events until the bus is cleared.

        The subscription starts here, not at the first iteration, so events
        emitted before the consumer begins are queued.
        """
        queue: asyncio.Queue[Optional[BotEvent]] = asyncio.Queue()
        self._streams.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: "asyncio.Queue[Optional[BotEvent]]") -> AsyncGenerator[BotEvent, None]:
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            if queue in self._streams:
                self._streams.remove(queue)
