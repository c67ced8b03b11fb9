"""
Sibling navigation over the conversation forest.

Moving to a sibling rewrites the active path from that point down. Below the
chosen sibling the path follows the most recently created child at each
level.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from branchchat.logging import get_logger
from branchchat.tree.builder import build_node_index
from branchchat.tree.models import MessageNode, SiblingInfo

logger = get_logger("tree.navigator")

Direction = Literal["previous", "next"]


def _siblings(
    node: MessageNode,
    roots: list[MessageNode],
    index: dict[str, MessageNode],
) -> list[MessageNode]:
    # Records with a missing parent are roots of the forest.
    parent = index.get(node.parent_id) if node.parent_id is not None else None
    return parent.children if parent is not None else roots


def sibling_info(
    message_id: str,
    roots: list[MessageNode],
    index: dict[str, MessageNode] | None = None,
) -> SiblingInfo:
    """
    Return the position of *message_id* among its siblings.

    Roots are counted among the other roots. An unknown id reports a single
    sibling, so a renderer shows no branch controls for it.
    """
    if index is None:
        index = build_node_index(roots)

    node = index.get(message_id)
    if node is None:
        return SiblingInfo()

    siblings = _siblings(node, roots, index)
    for position, sibling in enumerate(siblings):
        if sibling.id == message_id:
            return SiblingInfo(index=position, total=len(siblings))
    return SiblingInfo()


def latest_descent(node: MessageNode) -> list[str]:
    """Ids below *node* following the newest child until a leaf."""
    path: list[str] = []
    current = node
    while current.children:
        current = current.children[-1]
        path.append(current.id)
    return path


def navigate(
    message_id: str,
    direction: Direction,
    active_path: Sequence[str],
    roots: list[MessageNode],
) -> list[str] | None:
    """
    Compute the active path after stepping from *message_id* to its previous
    or next sibling.

    Returns ``None`` when there is no sibling in that direction or
    *message_id* is not on *active_path*. The forest is never modified.
    """
    if direction not in ("previous", "next"):
        raise ValueError(f"Unknown direction: {direction!r}")

    index = build_node_index(roots)
    node = index.get(message_id)
    if node is None:
        return None

    info = sibling_info(message_id, roots, index)
    if direction == "previous" and not info.has_previous:
        return None
    if direction == "next" and not info.has_next:
        return None

    try:
        position = list(active_path).index(message_id)
    except ValueError:
        logger.debug("Cannot navigate from %s: not on the active path", message_id)
        return None

    siblings = _siblings(node, roots, index)
    target = siblings[info.index - 1 if direction == "previous" else info.index + 1]

    return [*active_path[:position], target.id, *latest_descent(target)]
