"""Unit tests for relevance filtering and topic policies."""

import pytest

from recents_core.domain.relevance import is_notification_relevant
from recents_core.domain.topics import TopicVisibilityTable
from recents_core.providers.base import MessageFlag, UserTopic, UserTopicVisibilityPolicy
from tests.factories import dm_message, stream_message


def followed(stream_id, topic):
    return UserTopic(stream_id, topic, UserTopicVisibilityPolicy.FOLLOWED)


class TestTopicVisibilityTable:
    """Tests for TopicVisibilityTable."""

    def test_unknown_topic_is_none(self, topics):
        assert topics.visibility_policy(10, "anything") == UserTopicVisibilityPolicy.NONE
        assert len(topics) == 0

    def test_lookup_is_case_insensitive(self):
        topics = TopicVisibilityTable([followed(10, "Release Notes")])

        assert topics.is_followed(10, "release notes")
        assert not topics.is_followed(11, "release notes")

    def test_apply_replaces_policy(self, topics):
        topics.apply(followed(10, "ops"))
        topics.apply(UserTopic(10, "OPS", UserTopicVisibilityPolicy.MUTED))

        assert topics.visibility_policy(10, "ops") == UserTopicVisibilityPolicy.MUTED
        assert len(topics) == 1

    def test_none_clears_entry(self, topics):
        topics.apply(followed(10, "ops"))

        topics.apply(UserTopic(10, "ops", UserTopicVisibilityPolicy.NONE))

        assert len(topics) == 0
        assert not topics.is_followed(10, "ops")

    def test_reset(self, topics):
        topics.apply(followed(10, "old"))

        topics.reset([followed(11, "new")])

        assert not topics.is_followed(10, "old")
        assert topics.is_followed(11, "new")


class TestIsNotificationRelevant:
    """Tests for is_notification_relevant."""

    def test_direct_messages_are_relevant(self, topics):
        assert is_notification_relevant(dm_message(1), topics)

    @pytest.mark.parametrize(
        "flag",
        [
            MessageFlag.MENTIONED,
            MessageFlag.WILDCARD_MENTIONED,
            MessageFlag.STREAM_WILDCARD_MENTIONED,
            MessageFlag.TOPIC_WILDCARD_MENTIONED,
            MessageFlag.HAS_ALERT_WORD,
        ],
    )
    def test_flagged_stream_messages_are_relevant(self, topics, flag):
        assert is_notification_relevant(stream_message(1, flags=[flag]), topics)

    def test_followed_topic_is_relevant(self):
        topics = TopicVisibilityTable([followed(10, "General")])

        assert is_notification_relevant(stream_message(1, topic="general"), topics)

    def test_plain_stream_message_is_not_relevant(self, topics):
        message = stream_message(1, flags=[MessageFlag.READ, MessageFlag.STARRED])

        assert not is_notification_relevant(message, topics)

    def test_muted_topic_is_not_relevant(self):
        topics = TopicVisibilityTable([UserTopic(10, "general", UserTopicVisibilityPolicy.MUTED)])

        assert not is_notification_relevant(stream_message(1), topics)
