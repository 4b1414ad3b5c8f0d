"""Conversation identities and list entries.

A recent conversation is either a channel topic or a direct-message group.
Both kinds share one entry type tagged with ``ConversationKind``; the
identity payload is a ``TopicKey`` or a ``DmKey``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from recents_core.providers.base import Message, MessageKind


class ConversationKind(str, Enum):
    """Kind of a recent conversation."""

    TOPIC = "topic"
    DM = "dm"


def canonicalize_topic(topic: str) -> str:
    """Canonical form used to compare topic names.

    Topics that differ only in case (or surrounding whitespace) are the same
    conversation.
    """
    return topic.strip().casefold()


@dataclass(frozen=True)
class TopicKey:
    """Identity of a channel topic conversation.

    Equality and hashing use the canonical topic; ``topic`` keeps the
    spelling it was created with for display.
    """

    stream_id: int
    topic: str = field(compare=False)
    canonical_topic: str = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "canonical_topic", canonicalize_topic(self.topic))

    @classmethod
    def of_message(cls, message: Message) -> "TopicKey":
        return cls(stream_id=message.stream_id, topic=message.topic or "")


@dataclass(frozen=True)
class DmKey:
    """Identity of a direct-message conversation.

    ``user_ids`` is the sorted set of participants other than the viewer.
    A conversation with oneself is ``(self_user_id,)``.
    """

    user_ids: tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, "user_ids", tuple(sorted(set(self.user_ids))))

    @classmethod
    def of_message(cls, message: Message, self_user_id: int) -> "DmKey":
        participants = set(message.recipient_ids) | {message.sender_id}
        others = participants - {self_user_id}
        return cls(user_ids=tuple(others) if others else (self_user_id,))

    def is_self(self, self_user_id: int) -> bool:
        return self.user_ids == (self_user_id,)


ConversationKey = Union[TopicKey, DmKey]


def key_for_message(message: Message, self_user_id: int) -> tuple[ConversationKind, ConversationKey]:
    """Return the conversation kind and identity a message belongs to."""
    if message.kind == MessageKind.STREAM:
        return ConversationKind.TOPIC, TopicKey.of_message(message)
    if message.kind == MessageKind.DM:
        return ConversationKind.DM, DmKey.of_message(message, self_user_id)
    raise ValueError(f"Unknown message kind: {message.kind!r}")


@dataclass(eq=False)
class RecentConversation:
    """One entry in the recent-conversations list.

    Entries are updated in place and compare by identity; use ``key`` to
    compare conversations.
    """

    kind: ConversationKind
    key: ConversationKey
    latest_message_id: int
    latest_timestamp: int
    latest_sender_id: int
    preview_text: Optional[str] = None

    @property
    def destination(self) -> ConversationKey:
        """Opaque navigation target for opening this conversation."""
        return self.key

    @property
    def label(self) -> str:
        """Short text identifying the conversation, for logs and debugging."""
        if self.kind == ConversationKind.TOPIC:
            return f"#{self.key.stream_id} > {self.key.topic}"
        if self.kind == ConversationKind.DM:
            return "dm:" + ",".join(str(uid) for uid in self.key.user_ids)
        raise ValueError(f"Unknown conversation kind: {self.kind!r}")


@dataclass
class PreviewEntry:
    """Cached preview metadata for one message."""

    text: str
    timestamp: int
    sender_id: int
