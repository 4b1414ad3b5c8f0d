"""Recent conversations index.

Maintains the unified list of recent conversations (channel topics and direct
messages) sorted by latest message id, newest first, together with the
lookup tables and preview cache that keep updates cheap.

All mutation goes through this class. Both the real-time event path and the
backfill path call ``upsert_from_message``; observers are notified once per
logical batch.

Usage:
    index = ConversationIndex(self_user_id=42)
    index.add_listener(redraw)

    index.handle_message(message)          # real-time
    index.apply_messages(history_batch)    # backfill

    for conversation in index.conversations:
        ...
"""

import heapq
from collections import deque
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from recents_core.domain.models import (
    ConversationKey,
    ConversationKind,
    DmKey,
    PreviewEntry,
    RecentConversation,
    TopicKey,
    key_for_message,
)
from recents_core.domain.preview import DEFAULT_MAX_LENGTH, extract_preview_text
from recents_core.observability import get_logger
from recents_core.providers.base import Message

logger = get_logger(__name__)

DEFAULT_CACHE_SIZE = 200

Listener = Callable[[], None]


class ConversationIndex:
    """Ordered, deduplicated set of recent conversations.

    Invariants:
    - ``sorted`` is strictly descending by ``latest_message_id``
    - at most one entry per conversation key
    - every key in the lookup tables appears exactly once in ``sorted`` with
      the same latest id, and vice versa
    - after ``evict_if_over_capacity`` the preview cache holds at most
      ``max_cache_size`` entries
    """

    def __init__(
        self,
        self_user_id: int,
        max_cache_size: int = DEFAULT_CACHE_SIZE,
        preview_max_length: int = DEFAULT_MAX_LENGTH,
    ):
        """Initialize an empty index.

        Args:
            self_user_id: The viewer's user id, used to key DM conversations.
            max_cache_size: Capacity of the preview cache.
            preview_max_length: Maximum preview length passed to the extractor.
        """
        self.self_user_id = self_user_id
        self.max_cache_size = max_cache_size
        self.preview_max_length = preview_max_length

        # All recent conversations, sorted by latest_message_id descending.
        self.sorted: deque[RecentConversation] = deque()

        # stream_id -> canonical topic -> latest message id
        self._topic_latest: dict[int, dict[str, int]] = {}
        # DmKey -> latest message id
        self._dm_latest: dict[DmKey, int] = {}
        # latest message id -> entry
        self._heads: dict[int, RecentConversation] = {}

        # message id -> preview metadata
        self._preview_cache: dict[int, PreviewEntry] = {}

        self._listeners: list[Listener] = []
        self._batch_depth = 0
        self._batch_dirty = False

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def conversations(self) -> list[RecentConversation]:
        """Snapshot of all conversations, newest first."""
        return list(self.sorted)

    def __len__(self) -> int:
        return len(self.sorted)

    def __iter__(self) -> Iterator[RecentConversation]:
        return iter(list(self.sorted))

    def get(self, key: ConversationKey) -> Optional[RecentConversation]:
        """Return the entry for a conversation key, if listed."""
        latest = self.latest_message_id(key)
        if latest is None:
            return None
        return self._heads.get(latest)

    def latest_message_id(self, key: ConversationKey) -> Optional[int]:
        """Latest message id known for a conversation, or None."""
        if isinstance(key, TopicKey):
            return self._lookup(ConversationKind.TOPIC, key)
        if isinstance(key, DmKey):
            return self._lookup(ConversationKind.DM, key)
        raise TypeError(f"Not a conversation key: {key!r}")

    def preview_for(self, message_id: int) -> Optional[PreviewEntry]:
        """Cached preview metadata for a message, if present."""
        return self._preview_cache.get(message_id)

    @property
    def cached_count(self) -> int:
        """Number of messages currently in the preview cache."""
        return len(self._preview_cache)

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def notify_listeners(self) -> None:
        """Signal that the index changed.

        Inside ``batch()`` the signal is deferred and collapsed into one
        notification when the outermost batch exits.
        """
        if self._batch_depth:
            self._batch_dirty = True
            return
        self._fire()

    @contextmanager
    def batch(self) -> Iterator["ConversationIndex"]:
        """Collapse notifications raised inside the block into one."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._batch_dirty:
                self._batch_dirty = False
                self._fire()

    def _fire(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.error("Index listener failed", exc_info=True, listener=repr(listener))

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def upsert_from_message(self, message: Message, preview_text: Optional[str]) -> bool:
        """Record a message as the possible head of its conversation.

        - Unknown conversation: insert a new entry.
        - Stored latest id is smaller: the message becomes the new head and
          the entry moves to its sorted position.
        - Stored latest id is equal: refresh preview, timestamp and sender
          in place (sort position is unchanged).
        - Stored latest id is larger: out-of-order delivery, ignored.

        Args:
            message: The message.
            preview_text: Precomputed preview for the message content.

        Returns:
            True if the index changed.
        """
        kind, key = key_for_message(message, self.self_user_id)
        prev = self._lookup(kind, key)

        if prev is None:
            conv = RecentConversation(
                kind=kind,
                key=key,
                latest_message_id=message.id,
                latest_timestamp=message.timestamp,
                latest_sender_id=message.sender_id,
                preview_text=preview_text,
            )
            self._store(kind, key, message.id)
            self._heads[message.id] = conv
            self._insert_sorted(conv)

        elif prev > message.id:
            return False

        elif prev == message.id:
            conv = self._heads[prev]
            if (
                conv.latest_timestamp == message.timestamp
                and conv.latest_sender_id == message.sender_id
                and conv.preview_text == preview_text
            ):
                return False
            conv.latest_timestamp = message.timestamp
            conv.latest_sender_id = message.sender_id
            conv.preview_text = preview_text

        else:
            conv = self._heads.pop(prev)
            self._remove_sorted(conv)
            conv.latest_message_id = message.id
            conv.latest_timestamp = message.timestamp
            conv.latest_sender_id = message.sender_id
            conv.preview_text = preview_text
            self._store(kind, key, message.id)
            self._heads[message.id] = conv
            self._insert_sorted(conv)

        self.notify_listeners()
        return True

    def cache_message(self, message: Message, preview_text: str) -> None:
        """Store preview metadata for a message."""
        self._preview_cache[message.id] = PreviewEntry(
            text=preview_text,
            timestamp=message.timestamp,
            sender_id=message.sender_id,
        )

    def handle_message(self, message: Message) -> bool:
        """Apply one newly sent message.

        Returns:
            True if the conversation list changed.
        """
        preview = extract_preview_text(message.content, self.preview_max_length)
        with self.batch():
            self.cache_message(message, preview)
            changed = self.upsert_from_message(message, preview)
            self.evict_if_over_capacity()
        return changed

    def apply_messages(self, messages: list[Message]) -> int:
        """Apply a batch of messages, notifying observers at most once.

        Returns:
            Number of messages that changed the conversation list.
        """
        changed = 0
        with self.batch():
            for message in messages:
                preview = extract_preview_text(message.content, self.preview_max_length)
                self.cache_message(message, preview)
                if self.upsert_from_message(message, preview):
                    changed += 1
            self.evict_if_over_capacity()
        return changed

    def apply_content_edit(self, message_ids: list[int], new_preview_text: str) -> bool:
        """Replace the preview of edited messages.

        Only messages already in the cache are updated there. A message that
        is a conversation's head also has its entry refreshed in place. Sort
        order and conversation identity never change.

        Returns:
            True if anything changed.
        """
        changed = False
        for message_id in message_ids:
            entry = self._preview_cache.get(message_id)
            if entry is not None:
                entry.text = new_preview_text
                changed = True

            head = self._heads.get(message_id)
            if head is not None and head.preview_text != new_preview_text:
                head.preview_text = new_preview_text
                changed = True

        if changed:
            self.notify_listeners()
        return changed

    def apply_deletion(self, message_ids: list[int]) -> bool:
        """Forget deleted messages.

        Conversations are never removed, and their latest message is not
        recomputed: an entry whose head was deleted stays where it is and
        shows no preview until a newer message arrives.

        Returns:
            True if anything changed.
        """
        changed = False
        for message_id in message_ids:
            if self._preview_cache.pop(message_id, None) is not None:
                changed = True

            head = self._heads.get(message_id)
            if head is not None and head.preview_text is not None:
                head.preview_text = None
                changed = True

        if changed:
            self.notify_listeners()
        return changed

    def evict_if_over_capacity(self) -> int:
        """Shrink the preview cache back to capacity.

        Evicts the smallest message ids first. Listed conversations keep their
        own preview text, so the visible list is unaffected.

        Returns:
            Number of evicted entries.
        """
        excess = len(self._preview_cache) - self.max_cache_size
        if excess <= 0:
            return 0

        for message_id in heapq.nsmallest(excess, self._preview_cache):
            del self._preview_cache[message_id]

        logger.debug(
            "Evicted preview cache entries",
            evicted=excess,
            remaining=len(self._preview_cache),
        )
        return excess

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _lookup(self, kind: ConversationKind, key: ConversationKey) -> Optional[int]:
        if kind == ConversationKind.TOPIC:
            topics = self._topic_latest.get(key.stream_id)
            if topics is None:
                return None
            return topics.get(key.canonical_topic)
        if kind == ConversationKind.DM:
            return self._dm_latest.get(key)
        raise ValueError(f"Unknown conversation kind: {kind!r}")

    def _store(self, kind: ConversationKind, key: ConversationKey, message_id: int) -> None:
        if kind == ConversationKind.TOPIC:
            self._topic_latest.setdefault(key.stream_id, {})[key.canonical_topic] = message_id
        elif kind == ConversationKind.DM:
            self._dm_latest[key] = message_id
        else:
            raise ValueError(f"Unknown conversation kind: {kind!r}")

    def _insert_sorted(self, conv: RecentConversation) -> None:
        """Insert at the first position whose latest id is smaller.

        O(1) at either end of the list.
        """
        msg_id = conv.latest_message_id
        if not self.sorted or self.sorted[0].latest_message_id < msg_id:
            self.sorted.appendleft(conv)
            return
        if self.sorted[-1].latest_message_id > msg_id:
            self.sorted.append(conv)
            return
        for i, existing in enumerate(self.sorted):
            if existing.latest_message_id < msg_id:
                self.sorted.insert(i, conv)
                return
        self.sorted.append(conv)

    def _remove_sorted(self, conv: RecentConversation) -> None:
        if self.sorted and self.sorted[0] is conv:
            self.sorted.popleft()
            return
        # Entries compare by identity.
        self.sorted.remove(conv)
