"""Zulip provider integration.

This package contains:
- API adapter
- Wire-format mappers for messages and events
"""

from recents_core.providers.zulip.adapter import (
    ZulipAdapter,
    narrow_for,
    parse_event,
    parse_message,
    parse_user_topic,
)

__all__ = [
    "ZulipAdapter",
    "narrow_for",
    "parse_event",
    "parse_message",
    "parse_user_topic",
]
