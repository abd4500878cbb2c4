"""Tests for thread resolution and noise filtering."""

import pytest

from adrbot.common.slack_client import SlackGateway, SlackMessage, slack_permalink
from adrbot.scribe.errors import EmptyThread
from adrbot.scribe.thread_resolver import ThreadResolver


ROOT = {"ts": "100.000001", "thread_ts": "100.000001", "user": "U1", "text": "we should use Postgres"}
REPLY = {"ts": "100.000003", "thread_ts": "100.000001", "user": "U2", "text": "agreed, cost and maturity"}


class TestResolve:
    def test_trigger_on_root(self, slack_client_factory):
        client = slack_client_factory([ROOT, REPLY])
        thread = ThreadResolver(SlackGateway(client=client)).resolve("C1", ROOT["ts"])

        assert thread.root_ts == ROOT["ts"]
        assert thread.text == "U1: we should use Postgres\nU2: agreed, cost and maturity"
        assert len(thread) == 2

    def test_trigger_on_reply_resolves_root(self, slack_client_factory):
        client = slack_client_factory([ROOT, REPLY])
        thread = ThreadResolver(SlackGateway(client=client)).resolve("C1", REPLY["ts"])

        assert thread.root_ts == ROOT["ts"]
        assert [m.author_id for m in thread.messages] == ["U1", "U2"]

    def test_reply_missing_from_listing_uses_thread_parent(self):
        from unittest.mock import MagicMock
        client = MagicMock()
        client.auth_test.return_value = {"user_id": "UBOT", "bot_id": "BBOT"}
        client.conversations_history.return_value = {"messages": []}
        client.conversations_replies.side_effect = [
            {"messages": [ROOT]},
            {"messages": [ROOT, REPLY], "has_more": False},
        ]

        thread = ThreadResolver(SlackGateway(client=client)).resolve("C1", REPLY["ts"])

        assert thread.root_ts == ROOT["ts"]
        assert "limit" not in client.conversations_replies.call_args_list[0].kwargs
        assert client.conversations_replies.call_args_list[1].kwargs["ts"] == ROOT["ts"]

    def test_standalone_message_is_its_own_root(self, slack_client_factory):
        lone = {"ts": "200.0", "user": "U3", "text": "let's ship on Friday"}
        client = slack_client_factory([lone])
        thread = ThreadResolver(SlackGateway(client=client)).resolve("C1", "200.0")

        assert thread.root_ts == "200.0"
        assert thread.text == "U3: let's ship on Friday"

    def test_own_bot_and_notifications_dropped(self, slack_client_factory):
        messages = [
            ROOT,
            {"ts": "100.000002", "thread_ts": ROOT["ts"], "user": "UBOT", "bot_id": "BBOT", "text": "hello from bot"},
            {"ts": "100.000004", "thread_ts": ROOT["ts"], "user": "U3",
             "text": ":white_check_mark: Created the decision record in Notion!\nhttps://notion.so/x"},
            REPLY,
        ]
        client = slack_client_factory(messages)
        thread = ThreadResolver(SlackGateway(client=client)).resolve("C1", ROOT["ts"])

        assert [m.text for m in thread.messages] == [ROOT["text"], REPLY["text"]]

    def test_other_bots_kept(self, slack_client_factory):
        other_bot = {"ts": "100.000002", "thread_ts": ROOT["ts"], "bot_id": "BOTHER", "subtype": "bot_message",
                     "text": "CI passed on the postgres branch"}
        client = slack_client_factory([ROOT, other_bot])
        thread = ThreadResolver(SlackGateway(client=client)).resolve("C1", ROOT["ts"])

        assert len(thread) == 2
        assert thread.messages[1].is_bot

    def test_empty_after_filtering_raises(self, slack_client_factory):
        bot_root = {"ts": "300.0", "user": "UBOT", "bot_id": "BBOT", "text": "Daily reminder"}
        client = slack_client_factory([bot_root])

        with pytest.raises(EmptyThread) as exc_info:
            ThreadResolver(SlackGateway(client=client)).resolve("C1", "300.0")

        assert exc_info.value.root_ts == "300.0"
        assert "No messages to process" in exc_info.value.user_message

    def test_pagination_followed(self):
        from unittest.mock import MagicMock
        client = MagicMock()
        client.auth_test.return_value = {"user_id": "UBOT", "bot_id": "BBOT"}
        client.conversations_history.return_value = {"messages": [ROOT]}
        client.conversations_replies.side_effect = [
            {"messages": [ROOT], "has_more": True, "response_metadata": {"next_cursor": "c2"}},
            {"messages": [REPLY], "has_more": False},
        ]

        thread = ThreadResolver(SlackGateway(client=client)).resolve("C1", ROOT["ts"])

        assert len(thread) == 2
        assert client.conversations_replies.call_args_list[1].kwargs["cursor"] == "c2"


class TestFilterMessages:
    def test_sorted_by_ts_and_stable(self):
        messages = [
            SlackMessage(author_id="U2", text="second", ts="10.5"),
            SlackMessage(author_id="U1", text="first", ts="10.1"),
            SlackMessage(author_id="U3", text="same ts A", ts="10.9"),
            SlackMessage(author_id="U4", text="same ts B", ts="10.9"),
        ]
        kept = ThreadResolver.filter_messages(messages)
        assert [m.text for m in kept] == ["first", "second", "same ts A", "same ts B"]

    def test_blank_text_dropped(self):
        kept = ThreadResolver.filter_messages([SlackMessage(author_id="U1", text="  ", ts="1.0")])
        assert kept == []


def test_slack_permalink():
    assert slack_permalink("C123", "1706799600.123456") == "https://slack.com/archives/C123/p1706799600123456"
