"""
branchchat - a branching conversation engine for language-model chats.

Every edit or regeneration adds a sibling variant instead of overwriting
history, so a conversation is a tree. The engine keeps the tree, the single
active path that is displayed, and the one streaming request that may be in
flight.

Example:
    from branchchat import ChatConfig, ConversationCoordinator, OpenAICompletion

    config = ChatConfig.from_env()
    coordinator = ConversationCoordinator(OpenAICompletion(config), config=config)

    reply_id = await coordinator.send("Explain copy-on-write")
    await coordinator.regenerate(reply_id)
    coordinator.navigate_sibling(reply_id, "next")
"""

from branchchat.adapters import CompletionResult, OpenAICompletion, StreamCompletion
from branchchat.config import ChatConfig
from branchchat.coordinator import (
    ERROR_TEMPLATE,
    GENERATING_MARKER,
    INTERRUPTED_MARKER,
    ConversationCoordinator,
    RenderedMessage,
)
from branchchat.errors import (
    BranchChatError,
    CompletionCancelledError,
    DuplicateMessageError,
    InvalidPathError,
    MessageNotFoundError,
)
from branchchat.events import (
    REQUEST_END,
    REQUEST_START,
    STREAM_DELTA,
    TREE_CHANGED,
    EventBus,
    RequestEndEvent,
    RequestStartEvent,
    StreamDeltaEvent,
    TreeChangedEvent,
)
from branchchat.tree import (
    ChatTurn,
    MessageNode,
    MessageRecord,
    MessageStore,
    SiblingInfo,
    active_nodes,
    ancestry_of,
    build_forest,
    navigate,
    sibling_info,
)

__version__ = "0.1.0"

__all__ = [
    # Coordinator
    "ConversationCoordinator",
    "RenderedMessage",
    "GENERATING_MARKER",
    "INTERRUPTED_MARKER",
    "ERROR_TEMPLATE",
    # Config
    "ChatConfig",
    # Backends
    "CompletionResult",
    "OpenAICompletion",
    "StreamCompletion",
    # Tree
    "ChatTurn",
    "MessageNode",
    "MessageRecord",
    "MessageStore",
    "SiblingInfo",
    "active_nodes",
    "ancestry_of",
    "build_forest",
    "navigate",
    "sibling_info",
    # Events
    "EventBus",
    "TREE_CHANGED",
    "REQUEST_START",
    "STREAM_DELTA",
    "REQUEST_END",
    "TreeChangedEvent",
    "RequestStartEvent",
    "StreamDeltaEvent",
    "RequestEndEvent",
    # Errors
    "BranchChatError",
    "CompletionCancelledError",
    "DuplicateMessageError",
    "InvalidPathError",
    "MessageNotFoundError",
]
