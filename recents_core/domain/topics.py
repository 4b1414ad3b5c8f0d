"""Viewer's topic visibility policies (muted, followed, ...)."""

from typing import Iterable

from recents_core.domain.models import canonicalize_topic
from recents_core.providers.base import UserTopic, UserTopicVisibilityPolicy


class TopicVisibilityTable:
    """In-memory map of stream -> topic -> visibility policy.

    Topics are matched by canonical name, so lookups are case-insensitive.
    Topics with no entry have policy NONE.
    """

    def __init__(self, user_topics: Iterable[UserTopic] = ()):
        self._policies: dict[int, dict[str, UserTopicVisibilityPolicy]] = {}
        for user_topic in user_topics:
            self.apply(user_topic)

    def visibility_policy(self, stream_id: int, topic: str) -> UserTopicVisibilityPolicy:
        topics = self._policies.get(stream_id)
        if not topics:
            return UserTopicVisibilityPolicy.NONE
        return topics.get(canonicalize_topic(topic), UserTopicVisibilityPolicy.NONE)

    def is_followed(self, stream_id: int, topic: str) -> bool:
        return self.visibility_policy(stream_id, topic) == UserTopicVisibilityPolicy.FOLLOWED

    def apply(self, user_topic: UserTopic) -> None:
        """Record a policy; NONE clears any existing entry."""
        canonical = canonicalize_topic(user_topic.topic_name)
        if user_topic.visibility_policy == UserTopicVisibilityPolicy.NONE:
            topics = self._policies.get(user_topic.stream_id)
            if topics is not None:
                topics.pop(canonical, None)
                if not topics:
                    del self._policies[user_topic.stream_id]
            return
        self._policies.setdefault(user_topic.stream_id, {})[canonical] = user_topic.visibility_policy

    def reset(self, user_topics: Iterable[UserTopic]) -> None:
        """Replace all policies."""
        self._policies.clear()
        for user_topic in user_topics:
            self.apply(user_topic)

    def __len__(self) -> int:
        return sum(len(topics) for topics in self._policies.values())
