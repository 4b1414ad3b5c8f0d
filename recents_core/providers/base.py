"""Base provider interface and DTOs.

This module defines the provider-agnostic boundary the recent-conversations
core talks to, along with the normalized data transfer objects it consumes:
- Message: A single stream or direct message
- MessageBatch: One page of history plus the "found oldest" signal
- Anchor: Where a history query starts
- UserTopic: A viewer's visibility policy for one topic
- MessageEvent / UpdateMessageEvent / DeleteMessageEvent / UserTopicEvent:
  real-time event inputs

Usage:
    class ZulipAdapter(HistoryProvider):
        async def fetch_messages(self, narrow, anchor, ...) -> MessageBatch:
            # Implementation
            pass
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


# =============================================================================
# ENUMS
# =============================================================================


class MessageKind(str, Enum):
    """Which kind of conversation a message belongs to."""

    STREAM = "stream"
    DM = "private"


class MessageFlag(str, Enum):
    """Per-viewer message flags reported by the server."""

    READ = "read"
    STARRED = "starred"
    MENTIONED = "mentioned"
    WILDCARD_MENTIONED = "wildcard_mentioned"
    STREAM_WILDCARD_MENTIONED = "stream_wildcard_mentioned"
    TOPIC_WILDCARD_MENTIONED = "topic_wildcard_mentioned"
    HAS_ALERT_WORD = "has_alert_word"

    @classmethod
    def parse_all(cls, values: list[str]) -> frozenset["MessageFlag"]:
        """Parse wire flag names, dropping ones this client does not know."""
        known = {flag.value: flag for flag in cls}
        return frozenset(known[v] for v in values if v in known)


class UserTopicVisibilityPolicy(int, Enum):
    """Viewer's visibility policy for a topic (wire values are integers)."""

    NONE = 0
    MUTED = 1
    UNMUTED = 2
    FOLLOWED = 3


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class Message:
    """Normalized message from a provider.

    Stream messages carry ``stream_id`` and ``topic``; direct messages carry
    ``recipient_ids`` (every participant, sender and viewer included).
    """

    id: int
    kind: MessageKind
    sender_id: int
    timestamp: int
    content: str

    # Variant-specific fields
    stream_id: Optional[int] = None
    topic: Optional[str] = None
    recipient_ids: tuple[int, ...] = ()

    flags: frozenset[MessageFlag] = field(default_factory=frozenset)
    raw_data: Optional[dict] = None

    def __post_init__(self):
        if self.kind == MessageKind.STREAM and self.stream_id is None:
            raise ValueError("Stream message requires stream_id")
        if self.kind == MessageKind.STREAM and self.topic is None:
            self.topic = ""


@dataclass
class MessageBatch:
    """One page of message history.

    Messages are ordered oldest first, as the server returns them.
    ``found_oldest`` is the server's explicit "no more history" signal.
    ``raw_oldest_id`` is the smallest id the server returned, including
    messages the provider could not parse and dropped.
    """

    messages: list[Message]
    found_oldest: bool = False
    raw_oldest_id: Optional[int] = None

    @property
    def oldest_id(self) -> Optional[int]:
        """Smallest message id covered by the batch, or None when empty."""
        ids = [m.id for m in self.messages]
        if self.raw_oldest_id is not None:
            ids.append(self.raw_oldest_id)
        return min(ids, default=None)


@dataclass(frozen=True)
class Anchor:
    """Starting point of a history query.

    Either the newest message (``message_id`` is None) or a specific id.
    """

    message_id: Optional[int] = None

    @classmethod
    def newest(cls) -> "Anchor":
        return cls()

    @classmethod
    def at(cls, message_id: int) -> "Anchor":
        return cls(message_id=message_id)

    @property
    def is_newest(self) -> bool:
        return self.message_id is None

    def to_param(self) -> str:
        """Encode the anchor as the query-string value."""
        return "newest" if self.is_newest else str(self.message_id)


@dataclass
class UserTopic:
    """Viewer's visibility policy for a single topic."""

    stream_id: int
    topic_name: str
    visibility_policy: UserTopicVisibilityPolicy
    last_updated: Optional[int] = None


# =============================================================================
# REAL-TIME EVENTS
# =============================================================================


@dataclass
class MessageEvent:
    """A new message was sent."""

    message: Message


@dataclass
class UpdateMessageEvent:
    """One or more messages were edited or re-rendered.

    ``rendered_content`` is set only when the content changed.
    ``rendering_only`` marks server-side re-renders that are not user edits.
    """

    message_ids: list[int]
    rendered_content: Optional[str] = None
    rendering_only: bool = False


@dataclass
class DeleteMessageEvent:
    """One or more messages were deleted."""

    message_ids: list[int]


@dataclass
class UserTopicEvent:
    """The viewer's visibility policy for a topic changed."""

    user_topic: UserTopic


Event = Union[MessageEvent, UpdateMessageEvent, DeleteMessageEvent, UserTopicEvent]


# =============================================================================
# ERRORS
# =============================================================================


class HistoryFetchError(Exception):
    """Raised when a history query could not complete."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


# =============================================================================
# PROVIDER INTERFACE
# =============================================================================


class HistoryProvider(ABC):
    """Abstract base class for message-history providers.

    Methods:
        fetch_messages: Fetch a page of history for a narrow
        fetch_user_topics: Fetch the viewer's topic visibility policies
    """

    @abstractmethod
    async def fetch_messages(
        self,
        narrow: str,
        anchor: Anchor,
        include_anchor: bool = True,
        num_before: int = 100,
    ) -> MessageBatch:
        """Fetch messages older than (or at) an anchor.

        Args:
            narrow: Search narrow, e.g. "is:dm". Empty for the combined feed.
            anchor: Where to start; newest or a specific message id.
            include_anchor: Whether the anchor message itself is returned.
            num_before: Maximum number of messages to return.

        Returns:
            MessageBatch ordered oldest first.

        Raises:
            HistoryFetchError: If the request could not complete.
        """
        ...

    @abstractmethod
    async def fetch_user_topics(self) -> list[UserTopic]:
        """Fetch every topic the viewer has a non-default policy for.

        Raises:
            HistoryFetchError: If the request could not complete.
        """
        ...
