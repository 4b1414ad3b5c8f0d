"""Which messages belong in a notification-oriented conversation list."""

from typing import Protocol

from recents_core.providers.base import Message, MessageFlag, MessageKind, UserTopicVisibilityPolicy

MENTION_FLAGS = frozenset({
    MessageFlag.MENTIONED,
    MessageFlag.WILDCARD_MENTIONED,
    MessageFlag.STREAM_WILDCARD_MENTIONED,
    MessageFlag.TOPIC_WILDCARD_MENTIONED,
})


class TopicVisibilityLookup(Protocol):
    """Anything that can answer a topic's visibility policy."""

    def visibility_policy(self, stream_id: int, topic: str) -> UserTopicVisibilityPolicy: ...


def is_notification_relevant(message: Message, topics: TopicVisibilityLookup) -> bool:
    """Whether a message should surface in the recent conversations list.

    Returns True for:
    - All direct messages
    - Stream messages where the viewer was @-mentioned (wildcards included)
    - Stream messages matching one of the viewer's alert words
    - Stream messages in topics the viewer follows
    """
    if message.kind == MessageKind.DM:
        return True

    if message.kind == MessageKind.STREAM:
        if message.flags & MENTION_FLAGS:
            return True

        if MessageFlag.HAS_ALERT_WORD in message.flags:
            return True

        policy = topics.visibility_policy(message.stream_id, message.topic or "")
        return policy == UserTopicVisibilityPolicy.FOLLOWED

    return False
