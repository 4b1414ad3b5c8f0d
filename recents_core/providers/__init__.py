"""Provider integrations for recent conversations.

This package contains provider-specific implementations:
- Base: Abstract interface and DTOs
- Zulip: HTTP client and wire-format mappers
"""

from recents_core.providers.base import (
    Anchor,
    DeleteMessageEvent,
    Event,
    HistoryFetchError,
    HistoryProvider,
    Message,
    MessageBatch,
    MessageEvent,
    MessageFlag,
    MessageKind,
    UpdateMessageEvent,
    UserTopic,
    UserTopicEvent,
    UserTopicVisibilityPolicy,
)

__all__ = [
    "Anchor",
    "DeleteMessageEvent",
    "Event",
    "HistoryFetchError",
    "HistoryProvider",
    "Message",
    "MessageBatch",
    "MessageEvent",
    "MessageFlag",
    "MessageKind",
    "UpdateMessageEvent",
    "UserTopic",
    "UserTopicEvent",
    "UserTopicVisibilityPolicy",
]
