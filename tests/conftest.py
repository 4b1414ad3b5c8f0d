"""Pytest configuration and fixtures for recent-conversations tests.

This module provides fixtures for:
- Index: an empty ConversationIndex with a listener call counter
- Provider: AsyncMock HistoryProvider for backfill tests
- Settings: test settings with safe defaults
"""

from unittest.mock import AsyncMock

import pytest

from recents_core.config import Settings
from recents_core.domain.index import ConversationIndex
from recents_core.domain.topics import TopicVisibilityTable
from recents_core.providers.base import HistoryProvider

from tests.factories import SELF_USER_ID


class ListenerSpy:
    """Counts index change notifications."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with safe defaults."""
    return Settings(
        zulip_site="https://zulip.example.com/",
        zulip_email="bot@example.com",
        zulip_api_key="test-api-key",
        http_max_attempts=1,
        log_json=False,
    )


@pytest.fixture
def index() -> ConversationIndex:
    return ConversationIndex(self_user_id=SELF_USER_ID)


@pytest.fixture
def listener(index) -> ListenerSpy:
    spy = ListenerSpy()
    index.add_listener(spy)
    return spy


@pytest.fixture
def topics() -> TopicVisibilityTable:
    return TopicVisibilityTable()


@pytest.fixture
def mock_provider():
    """Create a mock history provider."""
    provider = AsyncMock(spec=HistoryProvider)
    provider.fetch_user_topics.return_value = []
    return provider
