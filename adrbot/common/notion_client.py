"""
Notion Client

Thin synchronous wrapper over the Notion REST API covering what the document
writer and the recovery sweeper need. Every call takes the access token
explicitly; one client instance serves any number of credentials.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from .schemas import DocumentHandle

logger = logging.getLogger("adrbot.common.notion_client")

NOTION_BASE_URL = "https://api.notion.com/v1"
NOTION_API_VERSION = "2025-09-03"

# Page properties of an ADR database
TITLE_PROPERTY = "Name"
TAGS_PROPERTY = "Tags"
SOURCE_LINK_PROPERTY = "SlackLink"

# API limits
MAX_TEXT_LENGTH = 2000
MAX_RICH_TEXT_ITEMS = 100
MAX_CHILDREN_PER_REQUEST = 100


class NotionError(Exception):
    """A Notion API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


# =============================================================================
# Property / rich text helpers
# =============================================================================

def rich_text(text: str, link: Optional[str] = None) -> List[Dict[str, Any]]:
    """Split text into rich text segments within the per-segment limit.

    Text beyond MAX_RICH_TEXT_ITEMS segments is dropped; callers holding longer
    text split it across several blocks first.
    """
    text = text or ""
    segments = [text[i:i + MAX_TEXT_LENGTH] for i in range(0, len(text), MAX_TEXT_LENGTH)] or [""]
    if len(segments) > MAX_RICH_TEXT_ITEMS:
        logger.warning("Truncating rich text of %d characters to %d segments", len(text), MAX_RICH_TEXT_ITEMS)
        segments = segments[:MAX_RICH_TEXT_ITEMS]
    items = []
    for segment in segments:
        item: Dict[str, Any] = {"type": "text", "text": {"content": segment}}
        if link:
            item["text"]["link"] = {"url": link}
        items.append(item)
    return items


def plain_text(items: Iterable[Dict[str, Any]]) -> str:
    """Join the plain text of a rich text array"""
    parts = []
    for item in items or []:
        if "plain_text" in item:
            parts.append(item["plain_text"])
        else:
            parts.append(item.get("text", {}).get("content", ""))
    return "".join(parts)


def title_property(text: str) -> Dict[str, Any]:
    return {"title": rich_text(text[:MAX_TEXT_LENGTH])}


def tags_property(tags: Iterable[str]) -> Dict[str, Any]:
    # Notion rejects commas inside multi_select option names
    return {"multi_select": [{"name": tag.replace(",", " ")[:100]} for tag in tags]}


def url_property(url: Optional[str]) -> Dict[str, Any]:
    return {"url": url or None}


def page_source_link(page: Dict[str, Any]) -> str:
    prop = page.get("properties", {}).get(SOURCE_LINK_PROPERTY, {})
    return prop.get("url") or ""


# =============================================================================
# Client
# =============================================================================

class NotionClient:
    """
    Notion REST client.

    Usage:
        notion = NotionClient()
        pages = notion.query_by_tag(data_source_id, "Ready", token=token)
        notion.close()
    """

    def __init__(
        self,
        api_version: str = NOTION_API_VERSION,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self._api_version = api_version
        self._http = http_client or httpx.Client(base_url=NOTION_BASE_URL, timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def _headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Notion-Version": self._api_version,
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        token: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not token:
            raise NotionError("Notion access token is missing")

        try:
            response = self._http.request(
                method, path, headers=self._headers(token), json=json, params=params,
            )
        except httpx.HTTPError as e:
            raise NotionError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise NotionError(
                body.get("message") or f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                code=body.get("code"),
            )
        return response.json()

    def _paginate(self, method: str, path: str, token: str, json: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        cursor = None
        while True:
            if method == "GET":
                params = {"page_size": 100}
                if cursor:
                    params["start_cursor"] = cursor
                data = self._request(method, path, token, params=params)
            else:
                body = dict(json or {}, page_size=100)
                if cursor:
                    body["start_cursor"] = cursor
                data = self._request(method, path, token, json=body)

            results.extend(data.get("results", []))
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                return results

    # -------------------------------------------------------------------------
    # Databases
    # -------------------------------------------------------------------------

    def retrieve_database(self, database_id: str, *, token: str) -> Dict[str, Any]:
        return self._request("GET", f"/databases/{database_id}", token)

    def data_source_id_for(self, database_id: str, *, token: str) -> Optional[str]:
        """First data source of a database, or None if it exposes none"""
        database = self.retrieve_database(database_id, token=token)
        sources = database.get("data_sources") or []
        return sources[0].get("id") if sources else None

    def validate_database(self, database_id: str, *, token: str) -> bool:
        try:
            self.retrieve_database(database_id, token=token)
            return True
        except NotionError as e:
            logger.warning("Database validation failed for %s: %s", database_id, e)
            return False

    def list_databases(self, *, token: str) -> List[Dict[str, str]]:
        """Databases reachable with ``token`` as ``{"id", "title"}`` dicts"""
        results = self._paginate(
            "POST", "/search", token,
            json={"filter": {"property": "object", "value": "data_source"}},
        )

        databases = []
        seen = set()
        for result in results:
            parent = result.get("parent", {})
            database_id = parent.get("database_id") or result.get("id")
            if not database_id or database_id in seen:
                continue
            seen.add(database_id)
            databases.append({
                "id": database_id,
                "title": plain_text(result.get("title", [])) or "Untitled Database",
            })
        return databases

    def find_best_database(self, *, token: str, keyword: str, exclude: Iterable[str] = ()) -> Optional[str]:
        """Prefer a database whose title contains ``keyword``, else the first.

        Databases in ``exclude`` are never returned.
        """
        excluded = set(exclude)
        databases = [d for d in self.list_databases(token=token) if d["id"] not in excluded]
        if not databases:
            return None

        for database in databases:
            if keyword.upper() in database["title"].upper():
                return database["id"]
        return databases[0]["id"]

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def query_data_source(
        self,
        data_source_id: str,
        *,
        token: str,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        body = {"filter": filter} if filter else {}
        return self._paginate("POST", f"/data_sources/{data_source_id}/query", token, json=body)

    def query_by_tag(self, data_source_id: str, tag: str, *, token: str) -> List[Dict[str, Any]]:
        return self.query_data_source(
            data_source_id,
            token=token,
            filter={"property": TAGS_PROPERTY, "multi_select": {"contains": tag}},
        )

    def find_by_source_link(
        self,
        database_id: str,
        link: str,
        *,
        token: str,
        any_tags: Optional[List[str]] = None,
        data_source_id: Optional[str] = None,
    ) -> Optional[str]:
        """Id of a page whose source link equals ``link``, or None.

        ``any_tags`` narrows the match to pages carrying at least one of them.
        """
        data_source_id = data_source_id or self.data_source_id_for(database_id, token=token)
        if not data_source_id:
            return None

        link_filter = {"property": SOURCE_LINK_PROPERTY, "url": {"equals": link}}
        if any_tags:
            query_filter = {
                "and": [
                    link_filter,
                    {"or": [
                        {"property": TAGS_PROPERTY, "multi_select": {"contains": tag}}
                        for tag in any_tags
                    ]},
                ]
            }
        else:
            query_filter = link_filter

        data = self._request(
            "POST", f"/data_sources/{data_source_id}/query", token,
            json={"filter": query_filter, "page_size": 1},
        )
        results = data.get("results", [])
        return results[0]["id"] if results else None

    # -------------------------------------------------------------------------
    # Pages and blocks
    # -------------------------------------------------------------------------

    def create_page(
        self,
        database_id: str,
        properties: Dict[str, Any],
        children: List[Dict[str, Any]],
        *,
        token: str,
    ) -> DocumentHandle:
        head = children[:MAX_CHILDREN_PER_REQUEST]
        page = self._request(
            "POST", "/pages", token,
            json={
                "parent": {"database_id": database_id},
                "properties": properties,
                "children": head,
            },
        )
        rest = children[MAX_CHILDREN_PER_REQUEST:]
        if rest:
            self.append_blocks(page["id"], rest, token=token)
        return DocumentHandle(id=page["id"], url=page.get("url", ""))

    def retrieve_page(self, page_id: str, *, token: str) -> Dict[str, Any]:
        return self._request("GET", f"/pages/{page_id}", token)

    def update_properties(self, page_id: str, properties: Dict[str, Any], *, token: str) -> Dict[str, Any]:
        return self._request("PATCH", f"/pages/{page_id}", token, json={"properties": properties})

    def archive_page(self, page_id: str, *, token: str) -> None:
        self._request("PATCH", f"/pages/{page_id}", token, json={"archived": True})

    def list_blocks(self, block_id: str, *, token: str) -> List[Dict[str, Any]]:
        return self._paginate("GET", f"/blocks/{block_id}/children", token)

    def delete_block(self, block_id: str, *, token: str) -> None:
        self._request("DELETE", f"/blocks/{block_id}", token)

    def append_blocks(self, block_id: str, children: List[Dict[str, Any]], *, token: str) -> None:
        for start in range(0, len(children), MAX_CHILDREN_PER_REQUEST):
            self._request(
                "PATCH", f"/blocks/{block_id}/children", token,
                json={"children": children[start:start + MAX_CHILDREN_PER_REQUEST]},
            )

    def replace_blocks(self, page_id: str, children: List[Dict[str, Any]], *, token: str) -> None:
        """Append ``children``, then delete the blocks the page held before.

        A failed append leaves the old content in place.
        """
        old_ids = [block["id"] for block in self.list_blocks(page_id, token=token)]
        self.append_blocks(page_id, children, token=token)
        for block_id in old_ids:
            self.delete_block(block_id, token=token)
