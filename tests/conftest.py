"""Shared pytest fixtures for branchchat tests."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import pytest

from branchchat.adapters.base import CompletionResult, DeltaCallback
from branchchat.config import ChatConfig
from branchchat.coordinator import ConversationCoordinator
from branchchat.errors import CompletionCancelledError
from branchchat.tree.models import ChatTurn, MessageRecord
from branchchat.tree.store import MessageStore


class ScriptedCompletion:
    """
    A fake completion backend.

    Pushes the scripted deltas, then either returns ``answer`` or raises
    ``error``. With ``block=True`` it waits until ``release()`` is called or
    the cancel event is set before finishing.
    """

    def __init__(
        self,
        answer: str = "hi",
        reasoning: str | None = None,
        answer_deltas: Sequence[str] = (),
        reasoning_deltas: Sequence[str] = (),
        error: Exception | None = None,
        block: bool = False,
        honour_cancel: bool = True,
    ) -> None:
        self.answer = answer
        self.reasoning = reasoning
        self.answer_deltas = list(answer_deltas)
        self.reasoning_deltas = list(reasoning_deltas)
        self.error = error
        self.block = block
        self.honour_cancel = honour_cancel
        self.calls: list[list[ChatTurn]] = []
        self.cancel_events: list[asyncio.Event] = []
        self.on_reasoning: DeltaCallback | None = None
        self.on_answer: DeltaCallback | None = None
        self.started = asyncio.Event()
        self._release = asyncio.Event()

    def release(self) -> None:
        self._release.set()

    async def __call__(
        self,
        history: list[ChatTurn],
        cancel: asyncio.Event,
        on_reasoning: DeltaCallback,
        on_answer: DeltaCallback,
    ) -> CompletionResult:
        self.calls.append(list(history))
        self.cancel_events.append(cancel)
        self.on_reasoning = on_reasoning
        self.on_answer = on_answer

        for delta in self.reasoning_deltas:
            on_reasoning(delta)
        for delta in self.answer_deltas:
            on_answer(delta)
        self.started.set()

        if self.block:
            waiters = [asyncio.ensure_future(self._release.wait())]
            if self.honour_cancel:
                waiters.append(asyncio.ensure_future(cancel.wait()))
            try:
                await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in waiters:
                    task.cancel()
            if self.honour_cancel and cancel.is_set():
                raise CompletionCancelledError("cancelled")

        if self.error is not None:
            raise self.error
        return CompletionResult(content=self.answer, reasoning_content=self.reasoning)


def make_record(
    id: str,
    parent_id: str | None = None,
    role: str = "user",
    content: str = "",
    created_at: float = 0.0,
) -> MessageRecord:
    """Create a MessageRecord with an explicit id and timestamp."""
    return MessageRecord(
        id=id,
        parent_id=parent_id,
        role=role,  # type: ignore[arg-type]
        content=content or id,
        created_at=created_at,
    )


@pytest.fixture
def branching_store() -> MessageStore:
    """
    A small forest:

        u1 ── a1 ── u2 ── a2
          ├── a1b
          └── a1c ── u3
        r2
    """
    return MessageStore(
        [
            make_record("u1", None, "user", created_at=1.0),
            make_record("a1", "u1", "assistant", created_at=2.0),
            make_record("u2", "a1", "user", created_at=3.0),
            make_record("a2", "u2", "assistant", created_at=4.0),
            make_record("a1b", "u1", "assistant", created_at=5.0),
            make_record("a1c", "u1", "assistant", created_at=6.0),
            make_record("u3", "a1c", "user", created_at=7.0),
            make_record("r2", None, "user", created_at=8.0),
        ]
    )


@pytest.fixture
def completion() -> ScriptedCompletion:
    return ScriptedCompletion()


@pytest.fixture
def coordinator(completion: ScriptedCompletion) -> ConversationCoordinator:
    return ConversationCoordinator(completion, config=ChatConfig())
