"""
Path resolution over the message store and the derived forest.

Ancestry is reconstructed straight from the store by following ``parent_id``
links, which costs O(depth) and needs no forest. The active path is projected
onto forest nodes through a one-off id index.
"""

from __future__ import annotations

from collections.abc import Sequence

from branchchat.errors import InvalidPathError
from branchchat.logging import get_logger
from branchchat.tree.builder import build_node_index
from branchchat.tree.models import (
    ChatTurn,
    MessageNode,
    MessageRecord,
    RegenerateContext,
)
from branchchat.tree.store import MessageStore

logger = get_logger("tree.paths")


def ancestry_of(message_id: str | None, store: MessageStore) -> list[MessageRecord]:
    """
    Return the records from the root down to *message_id*, inclusive.

    Returns an empty list for ``None`` or an unknown id. A revisited id stops
    the walk, so a corrupted store cannot loop forever.
    """
    history: list[MessageRecord] = []
    seen: set[str] = set()
    current_id = message_id

    while current_id is not None and current_id not in seen:
        record = store.get(current_id)
        if record is None:
            break
        seen.add(current_id)
        history.append(record)
        current_id = record.parent_id

    history.reverse()
    return history


def path_to(message_id: str | None, store: MessageStore) -> list[str]:
    """Return the ids from the root down to *message_id*, inclusive."""
    return [record.id for record in ancestry_of(message_id, store)]


def active_nodes(active_path: Sequence[str], roots: list[MessageNode]) -> list[MessageNode]:
    """
    Map each id of *active_path* to its forest node, in order.

    Ids that no longer resolve are dropped. No engine operation produces such
    ids; callers that need a hard guarantee use :func:`validate_path`.
    """
    if not active_path:
        return []

    index = build_node_index(roots)
    nodes: list[MessageNode] = []
    for message_id in active_path:
        node = index.get(message_id)
        if node is None:
            logger.debug("Dropping unresolved id %s from active path", message_id)
            continue
        nodes.append(node)
    return nodes


def validate_path(active_path: Sequence[str], store: MessageStore) -> None:
    """
    Check that *active_path* starts at a root and follows parent links.

    Raises:
        InvalidPathError: an id is unknown or does not continue the chain.
    """
    expected_parent: str | None = None
    for position, message_id in enumerate(active_path):
        record = store.get(message_id)
        if record is None:
            raise InvalidPathError(f"Unknown message {message_id!r} at position {position}")
        if record.parent_id != expected_parent:
            raise InvalidPathError(
                f"Message {message_id!r} at position {position} has parent "
                f"{record.parent_id!r}, expected {expected_parent!r}"
            )
        expected_parent = message_id


def regenerate_context(target_id: str, store: MessageStore) -> RegenerateContext | None:
    """
    Work out where a regenerated reply for *target_id* goes.

    For an assistant message the new reply becomes a sibling, so it hangs off
    the target's parent. For a user message the new reply is another child of
    the target itself. The history ends at that parent and therefore never
    contains the reply being replaced.

    Returns ``None`` if *target_id* is unknown.
    """
    target = store.get(target_id)
    if target is None:
        return None

    parent_id = target.parent_id if target.role == "assistant" else target.id
    return RegenerateContext(
        target_id=target_id,
        parent_id=parent_id,
        history=ancestry_of(parent_id, store),
    )


def to_chat_turns(records: Sequence[MessageRecord]) -> list[ChatTurn]:
    """Strip records down to the role/content pairs sent to a model."""
    return [ChatTurn(role=record.role, content=record.content) for record in records]
