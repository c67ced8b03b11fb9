"""
Forest construction from a flat message store.

The forest is a disposable view: it is rebuilt in full after every store
change and node objects must not be kept across changes.
"""

from __future__ import annotations

from collections.abc import Iterable

from branchchat.logging import get_logger
from branchchat.tree.models import MessageNode, MessageRecord
from branchchat.tree.store import MessageStore

logger = get_logger("tree.builder")


def _sort_key(node: MessageNode) -> float:
    return node.created_at


def build_forest(records: MessageStore | Iterable[MessageRecord]) -> list[MessageNode]:
    """
    Build the list of root nodes from a store (or any iterable of records).

    Children and roots are ordered by ``created_at``. The sort is stable, so
    records created within the same clock tick keep their insertion order.
    A record whose parent is missing is treated as a root.
    """
    if isinstance(records, MessageStore):
        records = records.records()

    # First pass: one node per record.
    nodes: dict[str, MessageNode] = {}
    for record in records:
        nodes[record.id] = MessageNode(record=record)

    # Second pass: link every node to its parent.
    roots: list[MessageNode] = []
    for node in nodes.values():
        parent = nodes.get(node.parent_id) if node.parent_id is not None else None
        if parent is None:
            if node.parent_id is not None:
                logger.debug("Message %s has missing parent %s", node.id, node.parent_id)
            roots.append(node)
        else:
            parent.children.append(node)

    for node in nodes.values():
        node.children.sort(key=_sort_key)
    roots.sort(key=_sort_key)

    # Depth is parent depth + 1, assigned top-down so input order does not matter.
    stack = [(root, 0) for root in roots]
    while stack:
        node, depth = stack.pop()
        node.depth = depth
        stack.extend((child, depth + 1) for child in node.children)

    return roots


def build_node_index(roots: list[MessageNode]) -> dict[str, MessageNode]:
    """Flatten a forest into an id -> node mapping."""
    index: dict[str, MessageNode] = {}
    stack = list(roots)
    while stack:
        node = stack.pop()
        index[node.id] = node
        stack.extend(node.children)
    return index


def find_node(message_id: str, roots: list[MessageNode]) -> MessageNode | None:
    """Find a node by id in a forest."""
    return build_node_index(roots).get(message_id)
