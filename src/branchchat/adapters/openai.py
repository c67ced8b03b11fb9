"""
OpenAI-compatible streaming completion backend.

Works with any chat-completions endpoint that streams ``content`` deltas and,
for reasoning models, ``reasoning_content`` deltas (DeepSeek by default).
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from openai import AsyncOpenAI

from branchchat.adapters.base import CompletionResult, DeltaCallback
from branchchat.config import ChatConfig, ChatMode
from branchchat.errors import CompletionCancelledError
from branchchat.logging import get_logger
from branchchat.tree.models import ChatTurn

logger = get_logger("adapters.openai")

EMPTY_ANSWER_FALLBACK = "Sorry, I could not come up with an answer to that."


class OpenAICompletion:
    """
    A :class:`~branchchat.adapters.base.StreamCompletion` backed by the
    OpenAI SDK.

    Example:
        config = ChatConfig.from_env()
        completion = OpenAICompletion(config)
        coordinator = ConversationCoordinator(completion, config=config)
    """

    def __init__(
        self,
        config: ChatConfig,
        client: AsyncOpenAI | None = None,
        mode: ChatMode | None = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.mode: ChatMode = mode or config.mode
        self._client = client
        self._now = now

    @property
    def client(self) -> AsyncOpenAI:
        """The SDK client, created on first use."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
            )
        return self._client

    def build_system_prompt(self) -> str:
        """The configured system prompt with today's date filled in."""
        today = self._now().strftime("%A, %B %d")
        return self.config.system_prompt.replace("{date}", today)

    def build_messages(self, history: list[ChatTurn]) -> list[dict[str, str]]:
        """System prompt followed by the user/assistant turns."""
        messages = [{"role": "system", "content": self.build_system_prompt()}]
        messages.extend(
            turn.to_dict() for turn in history if turn.role in ("user", "assistant")
        )
        return messages

    def build_request(self, history: list[ChatTurn]) -> dict[str, Any]:
        """Request kwargs for ``chat.completions.create``."""
        request: dict[str, Any] = {
            "model": self.config.model_for_mode(self.mode),
            "messages": self.build_messages(history),
            "max_tokens": self.config.max_tokens_for_mode(self.mode),
            "stream": True,
        }
        # Reasoning models reject sampling parameters.
        if self.mode == "chat":
            request["temperature"] = self.config.temperature
        return request

    async def __call__(
        self,
        history: list[ChatTurn],
        cancel: asyncio.Event,
        on_reasoning: DeltaCallback,
        on_answer: DeltaCallback,
    ) -> CompletionResult:
        if cancel.is_set():
            raise CompletionCancelledError("Request cancelled before it started")

        request = self.build_request(history)
        logger.debug(
            "Requesting %s with %d messages (max_tokens=%d)",
            request["model"],
            len(request["messages"]),
            request["max_tokens"],
        )
        stream = await _unless_cancelled(self.client.chat.completions.create(**request), cancel)

        reasoning_parts: list[str] = []
        answer_parts: list[str] = []
        try:
            chunks = stream.__aiter__()
            while True:
                chunk = await _unless_cancelled(_next_chunk(chunks), cancel)
                if chunk is _END_OF_STREAM:
                    break
                if cancel.is_set():
                    raise CompletionCancelledError("Request cancelled")
                if not chunk.choices:
                    continue

                delta = chunk.choices[0].delta
                reasoning = getattr(delta, "reasoning_content", None)
                if reasoning:
                    reasoning_parts.append(reasoning)
                    on_reasoning(reasoning)
                if delta.content:
                    answer_parts.append(delta.content)
                    on_answer(delta.content)
        finally:
            await _close_stream(stream)

        content = "".join(answer_parts)
        if not content:
            logger.warning("Model %s returned an empty answer", request["model"])
        return CompletionResult(
            content=content or EMPTY_ANSWER_FALLBACK,
            reasoning_content="".join(reasoning_parts) or None,
        )


_END_OF_STREAM = object()


async def _next_chunk(chunks: Any) -> Any:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return _END_OF_STREAM


async def _unless_cancelled(awaitable: Awaitable[Any], cancel: asyncio.Event) -> Any:
    """
    Await *awaitable*, giving up as soon as *cancel* is set.

    Raises:
        CompletionCancelledError: *cancel* was set before *awaitable* finished.
    """
    work = asyncio.ensure_future(awaitable)
    cancelled = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({work, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        work.cancel()
        raise
    finally:
        cancelled.cancel()
    if not work.done():
        work.cancel()
        raise CompletionCancelledError("Request cancelled")
    return work.result()


async def _close_stream(stream: Any) -> None:
    close = getattr(stream, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result
