"""
Conversation tree module.

Stores every message variant in a copy-on-write table keyed by id, derives a
forest from it, and resolves the single active path that is displayed.
"""

from branchchat.tree.builder import build_forest, build_node_index, find_node
from branchchat.tree.models import (
    ChatTurn,
    MessageNode,
    MessageRecord,
    RegenerateContext,
    Role,
    SiblingInfo,
    create_message,
    new_message_id,
    new_timestamp,
)
from branchchat.tree.navigator import Direction, latest_descent, navigate, sibling_info
from branchchat.tree.paths import (
    active_nodes,
    ancestry_of,
    path_to,
    regenerate_context,
    to_chat_turns,
    validate_path,
)
from branchchat.tree.store import MessageStore

__all__ = [
    # Models
    "ChatTurn",
    "MessageNode",
    "MessageRecord",
    "RegenerateContext",
    "Role",
    "SiblingInfo",
    "create_message",
    "new_message_id",
    "new_timestamp",
    # Store
    "MessageStore",
    # Builder
    "build_forest",
    "build_node_index",
    "find_node",
    # Paths
    "active_nodes",
    "ancestry_of",
    "path_to",
    "regenerate_context",
    "to_chat_turns",
    "validate_path",
    # Navigator
    "Direction",
    "latest_descent",
    "navigate",
    "sibling_info",
]
