"""Backfill of recent conversations from message history.

The conversation list starts empty (or holds only what arrived in real time)
and is filled in by paging backwards through history. Two strategies are
supported:

- CLASSIFIED: four independent queries (direct messages, @-mentions, alert
  words, followed topics) run concurrently, each with its own cursor. Every
  message they return is relevant by construction.
- COMBINED: one query over the combined feed, filtered locally with
  ``is_notification_relevant``.

Either way the engine exposes the same contract: ``fetch_initial`` once,
``fetch_older`` as the user scrolls, and ``has_reached_oldest`` once every
cursor is exhausted.

Usage:
    engine = BackfillEngine(index=index, provider=adapter, topics=topics)

    await engine.fetch_initial()
    while not engine.has_reached_oldest:
        await engine.fetch_older()
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from recents_core.domain.index import ConversationIndex
from recents_core.domain.relevance import is_notification_relevant
from recents_core.domain.topics import TopicVisibilityTable
from recents_core.observability import get_logger
from recents_core.providers.base import (
    Anchor,
    HistoryFetchError,
    HistoryProvider,
    MessageBatch,
)

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


class BackfillStrategy(str, Enum):
    """How history is queried."""

    CLASSIFIED = "classified"
    COMBINED = "combined"


# Cursor name -> search narrow
CLASSIFIED_NARROWS = {
    "dm": "is:dm",
    "mentioned": "is:mentioned",
    "alerted": "is:alerted",
    "followed": "is:followed",
}
COMBINED_NARROW = ""


@dataclass
class BackfillCursor:
    """Pagination state for one history query stream.

    ``oldest_seen`` only moves backwards and ``exhausted`` only moves from
    False to True.
    """

    name: str
    narrow: str
    filter_relevant: bool = False
    oldest_seen: Optional[int] = None
    exhausted: bool = False

    def advance(self, batch: MessageBatch) -> None:
        """Move the cursor past a fetched batch.

        Exhaustion comes only from the server's ``found_oldest`` signal; an
        empty batch on its own does not exhaust the cursor.
        """
        oldest = batch.oldest_id
        if oldest is not None and (self.oldest_seen is None or oldest < self.oldest_seen):
            self.oldest_seen = oldest
        if batch.found_oldest:
            self.exhausted = True

    def next_anchor(self) -> Optional[tuple[Anchor, bool]]:
        """Anchor and include_anchor flag for the next older page.

        None until a fetch has returned at least one message.
        """
        if self.oldest_seen is None:
            return None
        return Anchor.at(self.oldest_seen), False


@dataclass
class BackfillRunResult:
    """Result of one backfill run."""

    queries: int
    messages_fetched: int
    messages_relevant: int
    conversations_changed: int
    reached_oldest: bool


def build_cursors(strategy: BackfillStrategy) -> list[BackfillCursor]:
    """Create the cursors a strategy needs."""
    if strategy == BackfillStrategy.CLASSIFIED:
        return [BackfillCursor(name=name, narrow=narrow) for name, narrow in CLASSIFIED_NARROWS.items()]
    if strategy == BackfillStrategy.COMBINED:
        return [BackfillCursor(name="combined", narrow=COMBINED_NARROW, filter_relevant=True)]
    raise ValueError(f"Unknown backfill strategy: {strategy!r}")


class BackfillEngine:
    """Pages message history into a ConversationIndex.

    Only one run is in flight at a time; calls made while a run is in flight
    return immediately and rely on that run's results. A failed run leaves
    every cursor untouched so it can simply be retried.
    """

    def __init__(
        self,
        index: ConversationIndex,
        provider: HistoryProvider,
        topics: Optional[TopicVisibilityTable] = None,
        strategy: BackfillStrategy = BackfillStrategy.CLASSIFIED,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        """Initialize the backfill engine.

        Args:
            index: Index that receives fetched messages.
            provider: Source of message history.
            topics: Topic visibility policies for the relevance filter.
            strategy: CLASSIFIED (four queries) or COMBINED (one filtered).
            batch_size: Messages requested per query.
        """
        self.index = index
        self.provider = provider
        self.topics = topics if topics is not None else TopicVisibilityTable()
        self.strategy = BackfillStrategy(strategy)
        self.batch_size = batch_size
        self.cursors = build_cursors(self.strategy)

        self.is_backfilling = False
        self.last_error: Optional[HistoryFetchError] = None
        self._initial_fetch_done = False

    @property
    def initial_fetch_done(self) -> bool:
        return self._initial_fetch_done

    @property
    def has_reached_oldest(self) -> bool:
        """True only once every cursor is exhausted."""
        return all(cursor.exhausted for cursor in self.cursors)

    def cursor(self, name: str) -> BackfillCursor:
        for cursor in self.cursors:
            if cursor.name == name:
                return cursor
        raise KeyError(name)

    async def fetch_initial(self) -> Optional[BackfillRunResult]:
        """Fetch the newest page of every query.

        Runs once; later calls (and calls during a run) are no-ops.

        Returns:
            The run result, or None if nothing ran or the fetch failed.
        """
        if self.is_backfilling or self._initial_fetch_done:
            return None

        plan = [(cursor, Anchor.newest(), True) for cursor in self.cursors]
        return await self._run(plan, initial=True)

    async def fetch_older(self) -> Optional[BackfillRunResult]:
        """Fetch the next older page of every non-exhausted query.

        No-op while a run is in flight, once all history is fetched, or
        before the initial fetch has completed. Cursors that have not seen a
        message yet have no anchor and are skipped.

        Returns:
            The run result, or None if nothing ran or the fetch failed.
        """
        if self.is_backfilling or self.has_reached_oldest or not self._initial_fetch_done:
            return None

        plan = []
        for cursor in self.cursors:
            if cursor.exhausted:
                continue
            next_anchor = cursor.next_anchor()
            if next_anchor is None:
                continue
            anchor, include_anchor = next_anchor
            plan.append((cursor, anchor, include_anchor))

        if not plan:
            return None
        return await self._run(plan, initial=False)

    async def refresh_topics(self) -> bool:
        """Reload topic visibility policies from the provider.

        Returns:
            True if the policies were reloaded.
        """
        try:
            user_topics = await self.provider.fetch_user_topics()
        except HistoryFetchError as e:
            logger.warning(
                "Topic policy refresh failed",
                error=str(e),
                status_code=e.status_code,
            )
            return False
        self.topics.reset(user_topics)
        return True

    async def _run(
        self,
        plan: list[tuple[BackfillCursor, Anchor, bool]],
        initial: bool,
    ) -> Optional[BackfillRunResult]:
        self.is_backfilling = True
        self.index.notify_listeners()

        batches: Optional[list[MessageBatch]] = None
        result: Optional[BackfillRunResult] = None
        try:
            batches = await self._fetch_all(plan)
        except HistoryFetchError as e:
            self.last_error = e
            logger.warning(
                "Backfill fetch failed",
                error=str(e),
                status_code=e.status_code,
                initial=initial,
                strategy=self.strategy.value,
            )
        finally:
            with self.index.batch():
                if batches is not None:
                    result = self._apply(plan, batches, initial)
                self.is_backfilling = False
                self.index.notify_listeners()

        return result

    async def _fetch_all(
        self,
        plan: list[tuple[BackfillCursor, Anchor, bool]],
    ) -> list[MessageBatch]:
        """Run every query concurrently; succeed only if all of them do."""
        outcomes = await asyncio.gather(
            *(
                self.provider.fetch_messages(
                    narrow=cursor.narrow,
                    anchor=anchor,
                    include_anchor=include_anchor,
                    num_before=self.batch_size,
                )
                for cursor, anchor, include_anchor in plan
            ),
            return_exceptions=True,
        )

        failures = [o for o in outcomes if isinstance(o, BaseException)]
        for failure in failures:
            if not isinstance(failure, HistoryFetchError):
                raise failure
        if failures:
            raise failures[0]
        return list(outcomes)

    def _apply(
        self,
        plan: list[tuple[BackfillCursor, Anchor, bool]],
        batches: list[MessageBatch],
        initial: bool,
    ) -> BackfillRunResult:
        fetched = 0
        relevant = 0
        changed = 0

        for (cursor, _, _), batch in zip(plan, batches):
            messages = batch.messages
            if cursor.filter_relevant:
                messages = [m for m in messages if is_notification_relevant(m, self.topics)]

            fetched += len(batch.messages)
            relevant += len(messages)
            changed += self.index.apply_messages(messages)
            cursor.advance(batch)

        if initial:
            self._initial_fetch_done = True
        self.last_error = None

        result = BackfillRunResult(
            queries=len(plan),
            messages_fetched=fetched,
            messages_relevant=relevant,
            conversations_changed=changed,
            reached_oldest=self.has_reached_oldest,
        )
        logger.info(
            "Backfill run applied",
            initial=initial,
            strategy=self.strategy.value,
            queries=result.queries,
            messages_fetched=fetched,
            messages_relevant=relevant,
            conversations_changed=changed,
            reached_oldest=result.reached_oldest,
        )
        return result
