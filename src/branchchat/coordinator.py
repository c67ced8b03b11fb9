"""
ConversationCoordinator - the stateful side of the conversation tree.

Owns the message store, the active path and the single in-flight request.
Every user action swaps in a new copy-on-write store and a new active path,
then rebuilds the forest. Streaming deltas only touch two text buffers; the
reply is written into the tree when the request completes, fails, or is
aborted.

At most one request runs at a time. Each request gets its own cancel event
and handle; the handle is dropped on completion or abort, so results and
deltas that arrive late from an abandoned request find nothing to update.

Example:
    coordinator = ConversationCoordinator(OpenAICompletion(config), config=config)
    await coordinator.send("What is a B-tree?")
    for message in coordinator.render():
        print(message.role, message.content)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from functools import partial

from branchchat.adapters.base import StreamCompletion
from branchchat.config import ChatConfig
from branchchat.errors import CompletionCancelledError
from branchchat.events import (
    REQUEST_END,
    REQUEST_START,
    STREAM_DELTA,
    TREE_CHANGED,
    EventBus,
    RequestEndEvent,
    RequestStartEvent,
    StreamDeltaEvent,
    TreeChangedEvent,
)
from branchchat.logging import get_logger
from branchchat.tree.builder import build_node_index, build_forest
from branchchat.tree.models import MessageNode, Role, SiblingInfo, create_message
from branchchat.tree.navigator import Direction, navigate, sibling_info
from branchchat.tree.paths import (
    active_nodes,
    ancestry_of,
    path_to,
    regenerate_context,
    to_chat_turns,
    validate_path,
)
from branchchat.tree.store import MessageStore

logger = get_logger("coordinator")

GENERATING_MARKER = "Generating..."
INTERRUPTED_MARKER = "Generation interrupted."
ERROR_TEMPLATE = "Sorry, something went wrong: {reason}"


def _task_cancelling() -> bool:
    """True if the running task has a pending ``cancel()`` request (3.11+)."""
    task = asyncio.current_task()
    cancelling = getattr(task, "cancelling", None)
    return bool(cancelling and cancelling())


@dataclass
class RenderedMessage:
    """Everything a renderer needs to draw one message of the active path."""

    id: str
    role: Role
    content: str
    reasoning: str | None = None
    is_streaming: bool = False
    sibling: SiblingInfo = field(default_factory=SiblingInfo)
    can_edit: bool = True


@dataclass
class _PendingRequest:
    """Handle of the in-flight request."""

    placeholder_id: str
    cancel: asyncio.Event = field(default_factory=asyncio.Event)


class ConversationCoordinator:
    """
    Applies send / regenerate / edit / abort onto the conversation tree.

    Request methods are coroutines that return once the reply has been
    written into the tree. They return the id of the assistant record they
    produced, or ``None`` when the call was rejected (blank input, a request
    already in flight, unknown target). No request failure escapes: backend
    errors become an assistant message describing the failure.
    """

    def __init__(
        self,
        completion: StreamCompletion,
        config: ChatConfig | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._completion = completion
        self.config = config or ChatConfig()
        self.events = events or EventBus()

        self._store = MessageStore()
        self._forest: list[MessageNode] = []
        self._active_path: list[str] = []
        self._pending: _PendingRequest | None = None
        self._reasoning_buffer = ""
        self._answer_buffer = ""

        self._seed()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def forest(self) -> list[MessageNode]:
        return self._forest

    @property
    def active_path(self) -> list[str]:
        return list(self._active_path)

    @property
    def is_loading(self) -> bool:
        """True while a request is in flight."""
        return self._pending is not None

    @property
    def streaming_id(self) -> str | None:
        """Id of the placeholder the in-flight request will fill."""
        return self._pending.placeholder_id if self._pending else None

    @property
    def streaming_reasoning(self) -> str:
        return self._reasoning_buffer

    @property
    def streaming_answer(self) -> str:
        return self._answer_buffer

    def _seed(self) -> None:
        store = MessageStore()
        path: list[str] = []
        if self.config.welcome_message:
            welcome = create_message(self.config.welcome_message, "assistant", None)
            store = store.with_added(welcome)
            path = [welcome.id]
        self._commit(store, path, "clear")

    def _commit(self, store: MessageStore, active_path: list[str], reason: str) -> None:
        self._store = store
        self._active_path = active_path
        self._forest = build_forest(store)
        self.events.emit(
            TREE_CHANGED,
            TreeChangedEvent(
                active_path=list(active_path),
                message_count=len(store),
                reason=reason,
            ),
        )

    def _reset_buffers(self) -> None:
        self._reasoning_buffer = ""
        self._answer_buffer = ""

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def send(self, content: str) -> str | None:
        """
        Append a user message to the end of the active path and request a
        reply to it.
        """
        if self.is_loading:
            logger.debug("send rejected: a request is already in flight")
            return None
        if not content.strip():
            logger.debug("send rejected: blank message")
            return None

        parent_id = self._active_path[-1] if self._active_path else None
        user = create_message(content.strip(), "user", parent_id)
        store = self._store.with_added(user)
        return await self._request(store, user.id, [*self._active_path, user.id], "send")

    async def regenerate(self, target_id: str) -> str | None:
        """
        Request an alternative reply.

        For an assistant message the new reply is a sibling of it; for a user
        message it is a new child of that message. The replaced reply is not
        part of the history sent to the model.
        """
        if self.is_loading:
            logger.debug("regenerate rejected: a request is already in flight")
            return None

        context = regenerate_context(target_id, self._store)
        if context is None:
            logger.warning("regenerate rejected: unknown message %s", target_id)
            return None

        base_path = path_to(context.parent_id, self._store)
        return await self._request(self._store, context.parent_id, base_path, "regenerate")

    async def edit_user_message(self, target_id: str, new_content: str) -> str | None:
        """
        Add *new_content* as a sibling of the user message *target_id* and
        request a reply to it. The original message and its replies stay in
        the tree.
        """
        if self.is_loading:
            logger.debug("edit rejected: a request is already in flight")
            return None
        if not new_content.strip():
            logger.debug("edit rejected: blank message")
            return None

        target = self._store.get(target_id)
        if target is None or target.role != "user":
            logger.warning("edit rejected: %s is not a user message", target_id)
            return None

        edited = create_message(new_content.strip(), "user", target.parent_id)
        store = self._store.with_added(edited)
        base_path = [*path_to(target.parent_id, self._store), edited.id]
        return await self._request(store, edited.id, base_path, "edit")

    def abort_request(self) -> str | None:
        """
        Stop the in-flight request and keep what has streamed so far.

        The placeholder receives the accumulated answer, or
        ``INTERRUPTED_MARKER`` if nothing arrived. Returns the placeholder id,
        or ``None`` if nothing was in flight.
        """
        request = self._pending
        if request is None:
            return None

        request.cancel.set()
        logger.info("Aborted request for %s", request.placeholder_id)
        self._finish(
            request,
            content=self._answer_buffer or INTERRUPTED_MARKER,
            reasoning=self._reasoning_buffer or None,
            outcome="aborted",
        )
        return request.placeholder_id

    def clear(self) -> None:
        """Abort any request and start over with an empty conversation."""
        self.abort_request()
        self._seed()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate_sibling(self, message_id: str, direction: Direction) -> bool:
        """
        Switch the active path to the previous or next sibling of
        *message_id*. Returns ``False`` when there is nothing to switch to or
        a request is in flight.
        """
        if self.is_loading:
            return False
        new_path = navigate(message_id, direction, self._active_path, self._forest)
        if new_path is None:
            return False
        self._commit(self._store, new_path, "navigate")
        return True

    def set_active_path(self, active_path: list[str]) -> bool:
        """
        Replace the active path. Returns ``False`` while a request is in
        flight.

        Raises:
            InvalidPathError: the path does not follow parent links.
        """
        if self.is_loading:
            return False
        validate_path(active_path, self._store)
        self._commit(self._store, list(active_path), "navigate")
        return True

    # ------------------------------------------------------------------
    # Streaming sinks
    # ------------------------------------------------------------------

    def on_reasoning_delta(self, text: str) -> None:
        """Append reasoning text to the in-flight request."""
        if self._pending is not None:
            self._deliver(self._pending, "reasoning", text)

    def on_answer_delta(self, text: str) -> None:
        """Append answer text to the in-flight request."""
        if self._pending is not None:
            self._deliver(self._pending, "answer", text)

    def _deliver(self, request: _PendingRequest, kind: str, text: str) -> None:
        if request is not self._pending:
            logger.debug("Dropping %s delta from an abandoned request", kind)
            return
        if kind == "reasoning":
            self._reasoning_buffer += text
        else:
            self._answer_buffer += text
        self.events.emit(
            STREAM_DELTA,
            StreamDeltaEvent(
                placeholder_id=request.placeholder_id,
                kind=kind,
                delta=text,
                reasoning=self._reasoning_buffer,
                answer=self._answer_buffer,
            ),
        )

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    async def _request(
        self,
        store: MessageStore,
        parent_id: str | None,
        base_path: list[str],
        reason: str,
    ) -> str:
        """Insert a placeholder reply under *parent_id* and fill it."""
        placeholder = create_message(GENERATING_MARKER, "assistant", parent_id)
        store = store.with_added(placeholder)
        history = to_chat_turns(ancestry_of(parent_id, store))

        request = _PendingRequest(placeholder_id=placeholder.id)
        self._pending = request
        self._reset_buffers()
        self._commit(store, [*base_path, placeholder.id], reason)

        logger.info("Requesting reply %s (%s, %d turns)", placeholder.id, reason, len(history))
        self.events.emit(
            REQUEST_START,
            RequestStartEvent(
                placeholder_id=placeholder.id,
                parent_id=parent_id,
                history_length=len(history),
            ),
        )

        try:
            result = await self._completion(
                history,
                request.cancel,
                partial(self._deliver, request, "reasoning"),
                partial(self._deliver, request, "answer"),
            )
        except CompletionCancelledError:
            if request is self._pending:
                # The backend gave up on its own; treat it like an abort.
                self.abort_request()
            return placeholder.id
        except asyncio.CancelledError:
            if request is self._pending:
                self.abort_request()
                raise
            if _task_cancelling():
                raise
            # The backend answered an abort that already finished the request.
            return placeholder.id
        except Exception as e:
            if request is not self._pending:
                logger.debug("Ignoring failure of abandoned request %s: %s", placeholder.id, e)
                return placeholder.id
            reason_text = str(e) or type(e).__name__
            logger.warning("Request %s failed: %s", placeholder.id, reason_text)
            self._finish(
                request,
                content=ERROR_TEMPLATE.format(reason=reason_text),
                reasoning=None,
                outcome="error",
                error=reason_text,
            )
            return placeholder.id

        if request is not self._pending:
            logger.debug("Ignoring result of abandoned request %s", placeholder.id)
            return placeholder.id

        self._finish(
            request,
            content=result.content,
            reasoning=result.reasoning_content or None,
            outcome="complete",
        )
        return placeholder.id

    def _finish(
        self,
        request: _PendingRequest,
        content: str,
        reasoning: str | None,
        outcome: str,
        error: str | None = None,
    ) -> None:
        self._pending = None
        self._reset_buffers()
        store = self._store.with_replaced(
            request.placeholder_id,
            content=content,
            reasoning_content=reasoning,
        )
        self._commit(store, self._active_path, outcome)
        self.events.emit(
            REQUEST_END,
            RequestEndEvent(placeholder_id=request.placeholder_id, outcome=outcome, error=error),
        )

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def render(self) -> list[RenderedMessage]:
        """Describe every message on the active path, root first."""
        index = build_node_index(self._forest)
        streaming_id = self.streaming_id
        can_edit = not self.is_loading

        rendered: list[RenderedMessage] = []
        for node in active_nodes(self._active_path, self._forest):
            is_streaming = node.id == streaming_id
            if is_streaming:
                content = self._answer_buffer or node.content
                reasoning = self._reasoning_buffer or None
            else:
                content = node.content
                reasoning = node.reasoning_content
            rendered.append(
                RenderedMessage(
                    id=node.id,
                    role=node.role,
                    content=content,
                    reasoning=reasoning,
                    is_streaming=is_streaming,
                    sibling=sibling_info(node.id, self._forest, index),
                    can_edit=can_edit,
                )
            )
        return rendered
