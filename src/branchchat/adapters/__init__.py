"""
Completion backends for the conversation coordinator.
"""

from branchchat.adapters.base import CompletionResult, DeltaCallback, StreamCompletion
from branchchat.adapters.openai import EMPTY_ANSWER_FALLBACK, OpenAICompletion

__all__ = [
    "CompletionResult",
    "DeltaCallback",
    "EMPTY_ANSWER_FALLBACK",
    "OpenAICompletion",
    "StreamCompletion",
]
