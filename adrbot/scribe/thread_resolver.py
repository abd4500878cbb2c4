"""
Thread Resolver

Turns a reaction on a Slack message into the conversation that the generation
step reads: the whole thread the message belongs to, minus our own bot's
messages and announcements.
"""

import logging
from typing import List

from ..common.schemas import ConversationThread, ThreadMessage
from ..common.slack_client import SlackGateway, SlackMessage
from .errors import EmptyThread
from .messages import is_notification

logger = logging.getLogger("adrbot.scribe.thread_resolver")


class ThreadResolver:
    """
    Resolves a trigger message into a ConversationThread.

    Filtering rules:
    - messages authored by our own bot identity are dropped
    - messages matching a bot announcement pattern are dropped
    - other bots' messages are kept (they may carry real discussion)
    """

    def __init__(self, slack: SlackGateway):
        self._slack = slack

    def resolve(self, channel_id: str, trigger_ts: str) -> ConversationThread:
        """
        Resolve the thread around ``trigger_ts``.

        Raises:
            EmptyThread: nothing is left after filtering
        """
        root_ts = trigger_ts
        trigger = self._slack.fetch_message_at(channel_id, trigger_ts)
        if trigger is not None and trigger.thread_root_ts:
            root_ts = trigger.thread_root_ts

        logger.debug("Root ts for %s in %s: %s", trigger_ts, channel_id, root_ts)

        replies = self._slack.fetch_replies(channel_id, root_ts)
        kept = self.filter_messages(replies)

        logger.info(
            "Resolved thread %s in %s: %d of %d messages kept",
            root_ts, channel_id, len(kept), len(replies),
        )

        if not kept:
            raise EmptyThread(channel_id, root_ts)

        return ConversationThread(
            channel_id=channel_id,
            root_ts=root_ts,
            messages=[
                ThreadMessage(
                    author_id=m.author_id,
                    text=m.text,
                    timestamp=m.ts,
                    is_bot=m.is_bot,
                )
                for m in kept
            ],
        )

    @staticmethod
    def filter_messages(messages: List[SlackMessage]) -> List[SlackMessage]:
        """Drop noise and order chronologically (stable for equal ts)"""
        kept = [
            m for m in messages
            if not m.is_own_bot
            and not is_notification(m.text)
            and m.text.strip()
        ]
        return sorted(kept, key=lambda m: _ts_key(m.ts))


def _ts_key(ts: str) -> float:
    try:
        return float(ts)
    except (TypeError, ValueError):
        return 0.0
