"""Per-account wiring of the recent conversations components.

Usage:
    session = build_session(self_user_id=42)
    session.index.add_listener(redraw)

    await session.engine.refresh_topics()
    await session.engine.fetch_initial()

    for data in event_queue:
        session.router.handle_raw_event(data)
"""

from dataclasses import dataclass
from typing import Optional

from recents_core.config import Settings, get_settings
from recents_core.domain.backfill import BackfillEngine, BackfillStrategy
from recents_core.domain.events import EventRouter
from recents_core.domain.index import ConversationIndex
from recents_core.domain.topics import TopicVisibilityTable
from recents_core.observability import configure_logging
from recents_core.providers.base import HistoryProvider
from recents_core.providers.zulip.adapter import ZulipAdapter


@dataclass
class RecentsSession:
    """Components that share one account's conversation index."""

    index: ConversationIndex
    topics: TopicVisibilityTable
    engine: BackfillEngine
    router: EventRouter


def build_session(
    self_user_id: int,
    provider: Optional[HistoryProvider] = None,
    settings: Optional[Settings] = None,
) -> RecentsSession:
    """Build the index, backfill engine and event router for one account.

    Also configures logging from ``log_level`` and ``log_json``.

    Args:
        self_user_id: The viewer's user id.
        provider: History provider; defaults to a ZulipAdapter from settings.
        settings: Settings; defaults to get_settings().
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    if provider is None:
        provider = ZulipAdapter.from_settings(settings)

    index = ConversationIndex(
        self_user_id=self_user_id,
        max_cache_size=settings.preview_cache_size,
        preview_max_length=settings.preview_max_length,
    )
    topics = TopicVisibilityTable()
    engine = BackfillEngine(
        index=index,
        provider=provider,
        topics=topics,
        strategy=BackfillStrategy(settings.backfill_strategy),
        batch_size=settings.backfill_batch_size,
    )
    router = EventRouter(index=index, topics=topics)

    return RecentsSession(index=index, topics=topics, engine=engine, router=router)
