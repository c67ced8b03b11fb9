"""
Exception types raised by the conversation tree engine.
"""

from __future__ import annotations


class BranchChatError(Exception):
    """Base class for all branchchat errors."""

    pass


class DuplicateMessageError(BranchChatError):
    """Raised when a record is added under an id that already exists."""

    def __init__(self, message_id: str) -> None:
        super().__init__(f"Message {message_id!r} already exists")
        self.message_id = message_id


class MessageNotFoundError(BranchChatError, KeyError):
    """Raised when an operation names a message id the store does not hold."""

    def __init__(self, message_id: str) -> None:
        super().__init__(f"Message {message_id!r} not found")
        self.message_id = message_id

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidPathError(BranchChatError, ValueError):
    """Raised when an active path does not follow parent links."""

    pass


class CompletionCancelledError(BranchChatError):
    """Raised by a completion backend when its cancel signal was set."""

    pass
