"""
Event system for the conversation coordinator.

Provides a small EventBus that the ConversationCoordinator uses to announce
tree changes and streaming progress to a renderer. Handlers only observe.

Example:
    from branchchat.events import EventBus, STREAM_DELTA

    bus = EventBus()

    def redraw(event):
        print(event.delta, end="", flush=True)

    bus.on(STREAM_DELTA, redraw)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from branchchat.logging import get_logger

logger = get_logger("events")


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

TREE_CHANGED = "tree_changed"
REQUEST_START = "request_start"
STREAM_DELTA = "stream_delta"
REQUEST_END = "request_end"


@dataclass
class TreeChangedEvent:
    """Emitted after the store or the active path was swapped."""

    active_path: list[str]
    message_count: int
    reason: str = ""  # "send", "regenerate", "edit", "navigate", "complete", ...


@dataclass
class RequestStartEvent:
    """Emitted right before the completion backend is called."""

    placeholder_id: str
    parent_id: str | None
    history_length: int


@dataclass
class StreamDeltaEvent:
    """Emitted for every reasoning or answer delta of the in-flight request."""

    placeholder_id: str
    kind: str  # "reasoning" or "answer"
    delta: str
    reasoning: str = ""
    answer: str = ""


@dataclass
class RequestEndEvent:
    """Emitted once a request has been written into the tree."""

    placeholder_id: str
    outcome: str  # "complete", "aborted", "error"
    error: str | None = None


# ---------------------------------------------------------------------------
# EventBus
# ---------------------------------------------------------------------------

EventHandler = Callable[[Any], Any]


class EventBus:
    """
    Synchronous fan-out of coordinator events to renderers.

    Handlers run in registration order. Streaming deltas arrive from inside
    the completion call, so handlers are plain functions; a coroutine
    function handler is skipped with a warning. Errors raised by a handler
    are logged and never reach the coordinator.

    Usage:
        bus = EventBus()
        unsubscribe = bus.on(REQUEST_END, lambda event: print(event.outcome))
        ...
        unsubscribe()
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def on(self, event: str, handler: EventHandler) -> Callable[[], None]:
        """Register *handler* for *event* and return a function removing it."""
        handlers = self._handlers.setdefault(event, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, event: str, data: Any = None) -> None:
        """Call every handler registered for *event* with *data*."""
        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(data)
            except Exception as e:
                logger.warning("Event handler error (event=%s): %s", event, e)
                continue
            if asyncio.iscoroutine(result):
                result.close()
                logger.warning("Async handler skipped (event=%s)", event)
