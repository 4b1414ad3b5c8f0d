"""Domain logic for recent conversations."""

from recents_core.domain.backfill import (
    BackfillCursor,
    BackfillEngine,
    BackfillRunResult,
    BackfillStrategy,
)
from recents_core.domain.events import EventRouter
from recents_core.domain.index import ConversationIndex
from recents_core.domain.models import (
    ConversationKind,
    DmKey,
    PreviewEntry,
    RecentConversation,
    TopicKey,
)
from recents_core.domain.preview import extract_preview_text
from recents_core.domain.relevance import is_notification_relevant
from recents_core.domain.topics import TopicVisibilityTable

__all__ = [
    "BackfillCursor",
    "BackfillEngine",
    "BackfillRunResult",
    "BackfillStrategy",
    "ConversationIndex",
    "ConversationKind",
    "DmKey",
    "EventRouter",
    "PreviewEntry",
    "RecentConversation",
    "TopicKey",
    "TopicVisibilityTable",
    "extract_preview_text",
    "is_notification_relevant",
]
