"""
Data models for the conversation tree.

A conversation is stored as a flat table of :class:`MessageRecord` objects,
each pointing at its parent. :class:`MessageNode` is the derived, linked view
rebuilt from that table after every change.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Literal

Role = Literal["user", "assistant"]


def new_message_id() -> str:
    """Generate a fresh, never reused message id."""
    return str(uuid.uuid4())


_last_timestamp = 0.0


def new_timestamp() -> float:
    """
    Wall-clock creation time that never goes backwards within a process.

    Values are non-decreasing even if the system clock steps back. Siblings
    with equal values keep insertion order.
    """
    global _last_timestamp
    _last_timestamp = max(time.time(), _last_timestamp)
    return _last_timestamp


@dataclass(frozen=True)
class MessageRecord:
    """A single message variant.

    Records never change identity or parent once created. Only ``content``
    and ``reasoning_content`` may be patched, and only through
    :meth:`MessageStore.with_replaced`, which produces a new record.
    """

    role: Role = "user"
    content: str = ""
    parent_id: str | None = None
    id: str = field(default_factory=new_message_id)
    created_at: float = field(default_factory=new_timestamp)
    reasoning_content: str | None = None  # assistant only, never sent back


def create_message(
    content: str,
    role: Role,
    parent_id: str | None,
    reasoning_content: str | None = None,
) -> MessageRecord:
    """Create a new record with a fresh id and the current time."""
    return MessageRecord(
        role=role,
        content=content,
        parent_id=parent_id,
        reasoning_content=reasoning_content if role == "assistant" else None,
    )


@dataclass
class MessageNode:
    """A record linked to its children. Only valid until the next mutation."""

    record: MessageRecord
    children: list[MessageNode] = field(default_factory=list)
    depth: int = 0

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def role(self) -> Role:
        return self.record.role

    @property
    def content(self) -> str:
        return self.record.content

    @property
    def parent_id(self) -> str | None:
        return self.record.parent_id

    @property
    def created_at(self) -> float:
        return self.record.created_at

    @property
    def reasoning_content(self) -> str | None:
        return self.record.reasoning_content

    @property
    def is_leaf(self) -> bool:
        return not self.children


@dataclass(frozen=True)
class ChatTurn:
    """The ``{role, content}`` pair handed to a completion backend."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class SiblingInfo:
    """Position of a node among its siblings (0-based index)."""

    index: int = 0
    total: int = 1

    @property
    def has_previous(self) -> bool:
        return self.index > 0

    @property
    def has_next(self) -> bool:
        return self.index < self.total - 1


@dataclass(frozen=True)
class RegenerateContext:
    """Where a regenerated reply attaches and what history it is built from."""

    target_id: str
    parent_id: str | None
    history: list[MessageRecord] = field(default_factory=list)
