"""Shared fakes for Notion, Slack and the LLM."""

import json
import pytest
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock, Mock

from adrbot.common.notion_client import MAX_RICH_TEXT_ITEMS, NotionClient, NotionError, page_source_link, plain_text, rich_text
from adrbot.common.schemas import DocumentHandle


def page_tags(page: Dict[str, Any]) -> List[str]:
    return [option["name"] for option in page["properties"].get("Tags", {}).get("multi_select", [])]


class FakeNotion:
    """In-memory stand-in for NotionClient.

    Databases are only reachable with the tokens they were added with.
    Databases listed in ``failing`` reject every write.
    """

    def __init__(self):
        self.databases: Dict[str, Dict[str, Any]] = {}
        self.pages: Dict[str, Dict[str, Any]] = {}
        self.failing = set()
        self.searches: List[str] = []
        self._next_id = 0

    # -- setup helpers --------------------------------------------------------

    def add_database(self, database_id: str, title: str = "ADR Database", tokens=("secret_channel",)):
        self.databases[database_id] = {"title": title, "tokens": set(tokens)}

    def pages_in(self, database_id: str, include_archived: bool = False) -> List[Dict[str, Any]]:
        return [
            p for p in self.pages.values()
            if p["database_id"] == database_id and (include_archived or not p["archived"])
        ]

    def fill_artifact(self, page_id: str, record: Any, tag: str = "Ready") -> None:
        """Paste JSON into the artifact's JSON block and retag it, like a user would"""
        page = self.pages[page_id]
        text = record if isinstance(record, str) else json.dumps(record)
        for block in page["children"]:
            if block["type"] == "code" and block["code"]["language"] == "json":
                block["code"]["rich_text"] = rich_text(text)
        page["properties"]["Tags"] = {"multi_select": [{"name": tag}]}

    # -- access checks --------------------------------------------------------

    def _check(self, database_id: str, token: str) -> None:
        database = self.databases.get(database_id)
        if database is None or token not in database["tokens"]:
            raise NotionError(f"Could not find database with ID: {database_id}", status_code=404, code="object_not_found")

    def _check_write(self, database_id: str, token: str) -> None:
        self._check(database_id, token)
        if database_id in self.failing:
            raise NotionError("Insufficient permissions", status_code=403, code="restricted_resource")

    def _check_blocks(self, children) -> None:
        for block in children:
            if len(block[block["type"]].get("rich_text", [])) > MAX_RICH_TEXT_ITEMS:
                raise NotionError("body failed validation: rich_text.length should be <= 100", status_code=400, code="validation_error")

    # -- NotionClient surface -------------------------------------------------

    def create_page(self, database_id, properties, children, *, token) -> DocumentHandle:
        self._check_write(database_id, token)
        self._check_blocks(children)
        self._next_id += 1
        page_id = f"page-{self._next_id}"
        self.pages[page_id] = {
            "id": page_id,
            "url": f"https://www.notion.so/{page_id}",
            "database_id": database_id,
            "properties": dict(properties),
            "children": [dict(b) for b in children],
            "archived": False,
        }
        return DocumentHandle(id=page_id, url=self.pages[page_id]["url"])

    def find_by_source_link(self, database_id, link, *, token, any_tags=None, data_source_id=None) -> Optional[str]:
        self._check(database_id, token)
        for page in self.pages_in(database_id):
            if page_source_link(page) != link:
                continue
            if any_tags and not set(page_tags(page)) & set(any_tags):
                continue
            return page["id"]
        return None

    def update_properties(self, page_id, properties, *, token):
        page = self.pages[page_id]
        self._check_write(page["database_id"], token)
        page["properties"].update(properties)
        return page

    def replace_blocks(self, page_id, children, *, token):
        page = self.pages[page_id]
        self._check_write(page["database_id"], token)
        self._check_blocks(children)
        page["children"] = [dict(b) for b in children]

    def retrieve_page(self, page_id, *, token):
        return self.pages[page_id]

    def list_databases(self, *, token):
        self.searches.append(token)
        return [
            {"id": database_id, "title": database["title"]}
            for database_id, database in self.databases.items()
            if token in database["tokens"]
        ]

    def find_best_database(self, *, token, keyword, exclude=()):
        return NotionClient.find_best_database(self, token=token, keyword=keyword, exclude=exclude)

    def data_source_id_for(self, database_id, *, token):
        self._check(database_id, token)
        return f"ds-{database_id}"

    def query_by_tag(self, data_source_id, tag, *, token):
        database_id = data_source_id[len("ds-"):]
        self._check(database_id, token)
        return [p for p in self.pages_in(database_id) if tag in page_tags(p)]

    def list_blocks(self, block_id, *, token):
        return [dict(b, id=f"{block_id}-b{i}") for i, b in enumerate(self.pages[block_id]["children"])]

    def archive_page(self, page_id, *, token):
        page = self.pages[page_id]
        self._check_write(page["database_id"], token)
        page["archived"] = True

    def close(self):
        pass


def make_slack_client(messages: List[Dict[str, Any]], bot_user_id: str = "UBOT", bot_id: str = "BBOT") -> MagicMock:
    """MagicMock WebClient serving one channel's messages"""
    client = MagicMock()
    client.auth_test.return_value = {"ok": True, "user_id": bot_user_id, "bot_id": bot_id}

    def history(channel, latest, inclusive=True, limit=1, **kwargs):
        top_level = [m for m in messages if not m.get("thread_ts") or m["thread_ts"] == m["ts"]]
        return {"ok": True, "messages": [m for m in top_level if m["ts"] == latest]}

    def replies(channel, ts, limit=None, cursor=None, **kwargs):
        # Any ts inside a thread returns the whole thread, parent first
        current = next((m for m in messages if m["ts"] == ts), {})
        root = current.get("thread_ts") or ts
        thread = [m for m in messages if m["ts"] == root or m.get("thread_ts") == root]
        thread.sort(key=lambda m: m["ts"] != root)
        if limit is not None:
            thread = thread[:limit]
        return {"ok": True, "messages": thread, "has_more": False}

    client.conversations_history.side_effect = history
    client.conversations_replies.side_effect = replies
    return client


def make_llm(response: Optional[str] = None, error: Optional[Exception] = None, available: bool = True) -> Mock:
    llm = Mock()
    llm.is_available = available
    if error is not None:
        llm.generate_json.side_effect = error
    else:
        llm.generate_json.return_value = response
    return llm


POSTGRES_RECORD = {
    "title": "Use PostgreSQL for the main database",
    "tags": ["Database", "Backend"],
    "status": "Accepted",
    "context": "We need a relational store for the new service.",
    "decision": "Adopt PostgreSQL.",
    "drivers": ["cost", "maturity"],
    "alternatives": [
        {"option": "MongoDB", "decision": "Rejected", "reasoning": "Weaker transactions"},
    ],
    "consequences": ["Team needs Postgres operations knowledge"],
}


@pytest.fixture
def notion():
    fake = FakeNotion()
    fake.add_database("db-channel", title="Team ADR", tokens=("secret_channel",))
    return fake


@pytest.fixture
def postgres_record():
    return json.loads(json.dumps(POSTGRES_RECORD))


@pytest.fixture
def fake_notion_cls():
    return FakeNotion


@pytest.fixture
def slack_client_factory():
    return make_slack_client


@pytest.fixture
def llm_factory():
    return make_llm


@pytest.fixture
def artifact_json_text():
    def _text(page: Dict[str, Any]) -> str:
        for block in page["children"]:
            if block["type"] == "code" and block["code"]["language"] == "json":
                return plain_text(block["code"]["rich_text"])
        return ""
    return _text
