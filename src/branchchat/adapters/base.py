"""
Completion backend interface.

The coordinator never talks to the network. It calls an injected
:class:`StreamCompletion` with the conversation history, a cancel signal and
two delta callbacks, and awaits the final result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from branchchat.tree.models import ChatTurn

DeltaCallback = Callable[[str], None]


@dataclass
class CompletionResult:
    """Final output of one completion request."""

    content: str
    reasoning_content: str | None = None


class StreamCompletion(Protocol):
    """
    A streaming completion call.

    Implementations push text through ``on_reasoning`` and ``on_answer`` as it
    arrives and return the full result at the end. When ``cancel`` is set
    they stop delivering deltas and raise
    :class:`~branchchat.errors.CompletionCancelledError` (raising
    :class:`asyncio.CancelledError` is accepted as well). Any other exception
    is reported to the user as a failed reply.
    """

    async def __call__(
        self,
        history: list[ChatTurn],
        cancel: asyncio.Event,
        on_reasoning: DeltaCallback,
        on_answer: DeltaCallback,
    ) -> CompletionResult: ...
