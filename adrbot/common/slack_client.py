"""
Slack Gateway

Wraps slack_sdk's WebClient with the few calls the pipeline makes:
fetch a message, fetch a thread, post a reply, and learn our own identity.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from slack_sdk import WebClient

logger = logging.getLogger("adrbot.common.slack_client")


@dataclass
class SlackMessage:
    """A Slack message reduced to what thread resolution needs"""
    author_id: str
    text: str
    ts: str
    thread_root_ts: Optional[str] = None
    is_bot: bool = False
    is_own_bot: bool = False


def slack_permalink(channel_id: str, ts: str) -> str:
    """Archive link for a message, used as the source link of a document"""
    return f"https://slack.com/archives/{channel_id}/p{ts.replace('.', '')}"


class SlackGateway:
    """
    Messaging platform collaborator.

    Usage:
        slack = SlackGateway(token="xoxb-...")
        root = slack.fetch_message_at("C123", "1706799600.123456")
        replies = slack.fetch_replies("C123", root.thread_root_ts or root.ts)
    """

    def __init__(self, token: Optional[str] = None, client: Optional[WebClient] = None):
        self._client = client or WebClient(token=token)
        self._identity: Optional[Tuple[str, str]] = None

    def bot_identity(self) -> Tuple[str, str]:
        """(user_id, bot_id) of the token's bot, cached after the first call"""
        if self._identity is None:
            response = self._client.auth_test()
            self._identity = (response.get("user_id") or "", response.get("bot_id") or "")
        return self._identity

    def _to_message(self, raw: Dict[str, Any]) -> SlackMessage:
        own_user_id, own_bot_id = self.bot_identity()
        user = raw.get("user") or ""
        bot_id = raw.get("bot_id") or ""
        is_bot = bool(bot_id) or raw.get("subtype") == "bot_message"
        is_own_bot = bool(
            (own_user_id and user == own_user_id)
            or (own_bot_id and bot_id == own_bot_id)
        )
        return SlackMessage(
            author_id=user or bot_id,
            text=raw.get("text") or "",
            ts=raw.get("ts") or "",
            thread_root_ts=raw.get("thread_ts"),
            is_bot=is_bot,
            is_own_bot=is_own_bot,
        )

    def fetch_message_at(self, channel_id: str, ts: str) -> Optional[SlackMessage]:
        """The message posted at ``ts``, whether top-level or a thread reply.

        For a reply Slack does not list, the thread parent is returned; its
        ``thread_root_ts`` is the root either way.
        """
        history = self._client.conversations_history(
            channel=channel_id, latest=ts, inclusive=True, limit=1,
        )
        for raw in history.get("messages") or []:
            if raw.get("ts") == ts:
                return self._to_message(raw)

        # Thread replies are not part of channel history. Slack lists the
        # thread parent first, so it stands in when the reply is not listed.
        replies = self._client.conversations_replies(channel=channel_id, ts=ts)
        messages = replies.get("messages") or []
        for raw in messages:
            if raw.get("ts") == ts:
                return self._to_message(raw)
        if messages:
            parent = self._to_message(messages[0])
            parent.thread_root_ts = parent.thread_root_ts or parent.ts
            return parent

        logger.debug("No message found at %s in %s", ts, channel_id)
        return None

    def fetch_replies(self, channel_id: str, root_ts: str) -> List[SlackMessage]:
        """Root message and all replies, following pagination"""
        messages: List[SlackMessage] = []
        cursor = None
        while True:
            kwargs = {"channel": channel_id, "ts": root_ts, "limit": 200}
            if cursor:
                kwargs["cursor"] = cursor
            response = self._client.conversations_replies(**kwargs)
            messages.extend(self._to_message(raw) for raw in response.get("messages") or [])

            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not response.get("has_more") or not cursor:
                return messages

    def post_message(self, channel_id: str, thread_ts: str, text: str) -> None:
        self._client.chat_postMessage(channel=channel_id, thread_ts=thread_ts, text=text)
