"""In-process event dispatch for best-effort side effects.

``emit()`` is synchronous and never blocks the caller: each subscribed
handler runs as its own task on the running loop. Handler failures are
logged and go no further.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Callable

from verdict.logging_config import get_logger

logger = get_logger(__name__)

REQUEST_CREATED = "request.created"
REQUEST_ROUTED = "request.routed"
VERDICT_SUBMITTED = "verdict.submitted"
REQUEST_COMPLETED = "request.completed"

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def emit(self, event_type: str, event_data: dict[str, Any]) -> None:
        """Fan an event out to its handlers as background tasks.

        Safe to call from async code. The caller does not wait for any
        handler to finish.
        """
        handlers = self._handlers.get(event_type)
        if not handlers:
            logger.debug("unrouted_event", event_type=event_type)
            return

        loop = asyncio.get_running_loop()
        payload = {"event_type": event_type, **event_data}
        for handler in handlers:
            task = loop.create_task(self._run(handler, payload))
            # Keep a reference until done, the loop only holds weak ones
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _run(self, handler: EventHandler, payload: dict[str, Any]) -> None:
        try:
            await handler(payload)
        except Exception as e:
            logger.warning(
                "event_handler_failed",
                event_type=payload.get("event_type"),
                handler=getattr(handler, "__qualname__", repr(handler)),
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait for in-flight handlers, including ones they emit."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._pending)
