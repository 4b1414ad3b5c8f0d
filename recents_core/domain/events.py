"""Routes real-time events into the conversation index."""

from typing import Any, Optional

from recents_core.domain.index import ConversationIndex
from recents_core.domain.preview import extract_preview_text
from recents_core.domain.topics import TopicVisibilityTable
from recents_core.observability import get_logger
from recents_core.providers.base import (
    DeleteMessageEvent,
    Event,
    MessageEvent,
    UpdateMessageEvent,
    UserTopicEvent,
)
from recents_core.providers.zulip.adapter import parse_event

logger = get_logger(__name__)


class EventRouter:
    """Forwards message events to the index's incremental-update operations."""

    def __init__(
        self,
        index: ConversationIndex,
        topics: Optional[TopicVisibilityTable] = None,
    ):
        self.index = index
        self.topics = topics if topics is not None else TopicVisibilityTable()

    def handle_event(self, event: Event) -> None:
        if isinstance(event, MessageEvent):
            self.index.handle_message(event.message)
        elif isinstance(event, UpdateMessageEvent):
            self._handle_update(event)
        elif isinstance(event, DeleteMessageEvent):
            with self.index.batch():
                self.index.apply_deletion(event.message_ids)
                self.index.notify_listeners()
        elif isinstance(event, UserTopicEvent):
            self.topics.apply(event.user_topic)
        else:
            logger.debug("Ignoring unsupported event", event_type=type(event).__name__)

    def handle_raw_event(self, data: dict[str, Any]) -> bool:
        """Parse a wire event and dispatch it.

        Returns:
            True if the event was recognized.
        """
        event = parse_event(data)
        if event is None:
            logger.debug("Ignoring unrecognized event", event_type=data.get("type"))
            return False
        self.handle_event(event)
        return True

    def _handle_update(self, event: UpdateMessageEvent) -> None:
        # Server-side re-renders are not user edits.
        if event.rendering_only:
            return
        if not event.message_ids:
            return

        with self.index.batch():
            if event.rendered_content is not None:
                preview = extract_preview_text(
                    event.rendered_content, self.index.preview_max_length
                )
                self.index.apply_content_edit(event.message_ids, preview)
            # Topic moves are not tracked; observers re-read the list.
            self.index.notify_listeners()
