"""Zulip API adapter.

Implements the HistoryProvider interface for Zulip, mapping Zulip's REST
responses and event-queue payloads to normalized DTOs.

Usage:
    adapter = ZulipAdapter(
        site="https://chat.zulip.org",
        email="bot@example.com",
        api_key="...",
    )

    batch = await adapter.fetch_messages("is:dm", Anchor.newest())
    topics = await adapter.fetch_user_topics()
"""

import json
import logging
from typing import Any, Optional

import httpx

from recents_core.providers.base import (
    Anchor,
    DeleteMessageEvent,
    Event,
    HistoryFetchError,
    HistoryProvider,
    Message,
    MessageBatch,
    MessageEvent,
    MessageFlag,
    MessageKind,
    UpdateMessageEvent,
    UserTopic,
    UserTopicEvent,
    UserTopicVisibilityPolicy,
)
from recents_core.util.retry import RetryConfig, with_async_retry

logger = logging.getLogger(__name__)


def narrow_for(narrow: str) -> list[dict[str, str]]:
    """Encode a search narrow such as "is:dm" as Zulip narrow terms.

    An empty narrow is the combined feed.
    """
    terms = []
    for token in narrow.split():
        operator, sep, operand = token.partition(":")
        if not sep:
            raise ValueError(f"Invalid narrow term: {token!r}")
        terms.append({"operator": operator, "operand": operand})
    return terms


def parse_message(data: dict[str, Any], flags: Optional[list[str]] = None) -> Message:
    """Map a Zulip message object to a Message DTO.

    Args:
        data: Message object from the API.
        flags: Flags delivered beside the message (event payloads); falls
            back to ``data["flags"]``.
    """
    wire_flags = flags if flags is not None else data.get("flags", [])
    common = {
        "id": int(data["id"]),
        "sender_id": int(data["sender_id"]),
        "timestamp": int(data.get("timestamp", 0)),
        "content": data.get("content") or "",
        "flags": MessageFlag.parse_all(wire_flags),
        "raw_data": data,
    }

    if data.get("type") == "stream":
        return Message(
            kind=MessageKind.STREAM,
            stream_id=int(data["stream_id"]),
            # "subject" is the wire name of the topic.
            topic=data.get("subject", data.get("topic", "")),
            **common,
        )

    if data.get("type") == "private":
        recipients = data.get("display_recipient") or []
        return Message(
            kind=MessageKind.DM,
            recipient_ids=tuple(int(r["id"]) for r in recipients),
            **common,
        )

    raise ValueError(f"Unknown message type: {data.get('type')!r}")


def parse_user_topic(data: dict[str, Any]) -> UserTopic:
    policy = data.get("visibility_policy", 0)
    try:
        visibility = UserTopicVisibilityPolicy(policy)
    except ValueError:
        visibility = UserTopicVisibilityPolicy.NONE
    return UserTopic(
        stream_id=int(data["stream_id"]),
        topic_name=data.get("topic_name", ""),
        visibility_policy=visibility,
        last_updated=data.get("last_updated"),
    )


def _raw_message_id(item: Any) -> Optional[int]:
    try:
        return int(item["id"])
    except (KeyError, TypeError, ValueError):
        return None


def parse_event(data: dict[str, Any]) -> Optional[Event]:
    """Map an event-queue payload to an event DTO.

    Returns:
        The event, or None for event types this client does not handle.
    """
    event_type = data.get("type")

    if event_type == "message":
        return MessageEvent(message=parse_message(data["message"], data.get("flags")))

    if event_type == "update_message":
        return UpdateMessageEvent(
            message_ids=[int(mid) for mid in data.get("message_ids", [])],
            rendered_content=data.get("rendered_content"),
            rendering_only=bool(data.get("rendering_only", False)),
        )

    if event_type == "delete_message":
        if "message_ids" in data:
            message_ids = [int(mid) for mid in data["message_ids"]]
        else:
            message_ids = [int(data["message_id"])]
        return DeleteMessageEvent(message_ids=message_ids)

    if event_type == "user_topic":
        return UserTopicEvent(user_topic=parse_user_topic(data))

    return None


class ZulipAdapter(HistoryProvider):
    """Zulip provider adapter.

    Authenticates with HTTP basic auth (email, API key). Transport errors are
    retried with exponential backoff; anything that still fails surfaces as
    HistoryFetchError.
    """

    API_PREFIX = "/api/v1"

    def __init__(
        self,
        site: str,
        email: str,
        api_key: str,
        timeout: float = 30.0,
        max_attempts: int = 3,
    ):
        """Initialize the Zulip adapter.

        Args:
            site: Realm base URL, e.g. "https://chat.zulip.org".
            email: Account email.
            api_key: Account API key.
            timeout: Per-request timeout in seconds.
            max_attempts: Attempts per request for transport errors.
        """
        self.site = site.rstrip("/")
        self.email = email
        self.api_key = api_key
        self.timeout = timeout
        self.retry_config = RetryConfig(
            max_attempts=max_attempts,
            retryable_exceptions=(httpx.TransportError,),
        )

    @classmethod
    def from_settings(cls, settings) -> "ZulipAdapter":
        """Build an adapter from Settings."""
        if not settings.zulip_email or not settings.zulip_api_key:
            raise ValueError("ZULIP_EMAIL and ZULIP_API_KEY are required")
        return cls(
            site=settings.zulip_site,
            email=settings.zulip_email,
            api_key=settings.zulip_api_key,
            timeout=settings.http_timeout_seconds,
            max_attempts=settings.http_max_attempts,
        )

    @with_async_retry()
    async def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
    ) -> httpx.Response:
        url = f"{self.site}{self.API_PREFIX}{endpoint}"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            if method == "GET":
                return await client.get(url, params=params, auth=(self.email, self.api_key))
            return await client.request(
                method, url, params=params, data=data, auth=(self.email, self.api_key)
            )

    async def _api_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make an API request and return the decoded success payload.

        Raises:
            HistoryFetchError: On transport failure, non-2xx status, or a
                non-success result.
        """
        try:
            response = await self._send(method, endpoint, params=params, data=data)
        except httpx.HTTPError as e:
            raise HistoryFetchError(f"Request to {endpoint} failed: {e}") from e

        if response.status_code != 200:
            raise HistoryFetchError(
                f"Request to {endpoint} returned {response.status_code}",
                response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise HistoryFetchError(
                f"Invalid JSON from {endpoint}", response.status_code
            ) from e

        if payload.get("result") != "success":
            raise HistoryFetchError(
                payload.get("msg") or f"Request to {endpoint} failed",
                response.status_code,
            )
        return payload

    async def fetch_messages(
        self,
        narrow: str,
        anchor: Anchor,
        include_anchor: bool = True,
        num_before: int = 100,
    ) -> MessageBatch:
        """Fetch messages older than (or at) an anchor via GET /messages."""
        params = {
            "anchor": anchor.to_param(),
            "include_anchor": json.dumps(include_anchor),
            "num_before": num_before,
            "num_after": 0,
            "narrow": json.dumps(narrow_for(narrow)),
            "apply_markdown": "true",
            "allow_empty_topic_name": "true",
        }

        payload = await self._api_request("GET", "/messages", params=params)

        messages = []
        raw_ids = []
        for item in payload.get("messages", []):
            raw_id = _raw_message_id(item)
            if raw_id is not None:
                raw_ids.append(raw_id)
            try:
                messages.append(parse_message(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping unparseable message %s", raw_id)

        # Pagination must move past dropped messages too.
        return MessageBatch(
            messages=messages,
            found_oldest=bool(payload.get("found_oldest", False)),
            raw_oldest_id=min(raw_ids, default=None),
        )

    async def fetch_user_topics(self) -> list[UserTopic]:
        """Fetch topic visibility policies via POST /register."""
        payload = await self._api_request(
            "POST",
            "/register",
            data={"fetch_event_types": json.dumps(["user_topic"])},
        )
        return [parse_user_topic(item) for item in payload.get("user_topics", [])]
