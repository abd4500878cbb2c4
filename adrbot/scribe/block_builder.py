"""
Block Builder

Renders decision records and error artifacts into Notion blocks.

A record is first lowered into a small variant tree (Scalar, ListNode,
KeyedNode) and the tree is rendered recursively:

- a list of scalars becomes bulleted items; other list items recurse at the
  same depth
- object keys become headings one level below their parent, heading_1 for
  the top level; keys nested below heading_3 become paragraphs instead
- title, tags, status and manual_fallback_text are skipped at the top level,
  they live in page properties or dedicated blocks
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Union

from pydantic import BaseModel

from ..common.notion_client import MAX_RICH_TEXT_ITEMS, MAX_TEXT_LENGTH, rich_text
from ..common.schemas import DecisionRecord, RECOVERY_TEMPLATE

MAX_HEADING_LEVEL = 3

SKIPPED_TOP_LEVEL_KEYS = frozenset({"title", "tags", "status", "manual_fallback_text"})

_EMPHASIS = re.compile(r"\*\*|__|~~|[*_]")

Block = Dict[str, Any]


# =============================================================================
# Variant tree
# =============================================================================

@dataclass(frozen=True)
class Scalar:
    value: str


@dataclass(frozen=True)
class ListNode:
    items: Tuple["Node", ...]


@dataclass(frozen=True)
class KeyedNode:
    entries: Tuple[Tuple[str, "Node"], ...]


Node = Union[Scalar, ListNode, KeyedNode]


def to_node(value: Any) -> Node:
    """Lower a model, dict, list or scalar into the variant tree"""
    if isinstance(value, BaseModel):
        value = value.model_dump(exclude_none=True)
    if isinstance(value, dict):
        return KeyedNode(tuple(
            (str(key), to_node(item)) for key, item in value.items() if item is not None
        ))
    if isinstance(value, (list, tuple)):
        return ListNode(tuple(to_node(item) for item in value))
    if value is None:
        return Scalar("")
    return Scalar(str(value))


# =============================================================================
# Text helpers
# =============================================================================

def sanitize(text: str) -> str:
    """Strip Markdown emphasis markers"""
    return _EMPHASIS.sub("", text or "")


def humanize_key(key: str) -> str:
    """alternatives_considered -> Alternatives considered, manualPrompt -> Manual prompt"""
    spaced = re.sub(r"[_\-]+", " ", key)
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", spaced).strip()
    return spaced[:1].upper() + spaced[1:].lower()


# =============================================================================
# Block constructors
# =============================================================================

def _block(block_type: str, body: Dict[str, Any]) -> Block:
    return {"object": "block", "type": block_type, block_type: body}


def heading(level: int, text: str) -> Block:
    return _block(f"heading_{level}", {"rich_text": rich_text(text)})


def paragraph(text: str) -> Block:
    return _block("paragraph", {"rich_text": rich_text(text)})


def bulleted_item(text: str) -> Block:
    return _block("bulleted_list_item", {"rich_text": rich_text(text)})


def callout(text: str, emoji: str, color: str = "blue_background") -> Block:
    return _block("callout", {
        "rich_text": rich_text(text),
        "icon": {"type": "emoji", "emoji": emoji},
        "color": color,
    })


def code(text: str, language: str) -> Block:
    return _block("code", {"rich_text": rich_text(text), "language": language})


def code_blocks(text: str, language: str) -> List[Block]:
    """One or more consecutive code blocks holding all of ``text``"""
    size = MAX_TEXT_LENGTH * MAX_RICH_TEXT_ITEMS
    text = text or ""
    return [code(text[i:i + size], language) for i in range(0, len(text), size)] or [code("", language)]


def divider() -> Block:
    return _block("divider", {})


def link_paragraph(label: str, url: str) -> Block:
    return _block("paragraph", {"rich_text": rich_text(label) + rich_text(url, link=url)})


# =============================================================================
# Recursive rendering
# =============================================================================

def build_blocks(node: Node, depth: int = 0) -> List[Block]:
    """Render a variant tree into a flat list of blocks"""
    blocks: List[Block] = []

    if isinstance(node, Scalar):
        blocks.append(paragraph(sanitize(node.value)))

    elif isinstance(node, ListNode):
        for item in node.items:
            if isinstance(item, Scalar):
                blocks.append(bulleted_item(sanitize(item.value)))
            else:
                blocks.extend(build_blocks(item, depth))

    elif isinstance(node, KeyedNode):
        for key, value in node.entries:
            if depth == 0 and key in SKIPPED_TOP_LEVEL_KEYS:
                continue

            label = humanize_key(key)
            level = depth + 1
            if level <= MAX_HEADING_LEVEL:
                blocks.append(heading(level, label))
                blocks.extend(build_blocks(value, depth + 1))
            elif isinstance(value, Scalar):
                blocks.append(paragraph(f"{label}: {sanitize(value.value)}"))
            else:
                blocks.append(paragraph(label))
                blocks.extend(build_blocks(value, depth + 1))

    return blocks


# =============================================================================
# Pages
# =============================================================================

def render_record_page(record: DecisionRecord, source_link: str) -> List[Block]:
    """Body of a finished decision record page"""
    children: List[Block] = []

    if record.status:
        children.append(callout(f"Status: {sanitize(record.status)}", "\U0001F4CC"))

    children.extend(build_blocks(to_node(record.body())))
    children.append(divider())
    children.append(link_paragraph("Original Slack Thread: ", source_link))

    if record.manual_fallback_text:
        children.append(heading(3, "⚠️ AI Generation Fallback"))
        children.extend(code_blocks(record.manual_fallback_text, "markdown"))

    return children


def render_artifact_page(prompt_text: str) -> List[Block]:
    """Body of an error artifact page: the prompt plus a JSON template to fill in"""
    return [
        heading(2, "Prompt at Error"),
        *code_blocks(prompt_text, "markdown"),
        divider(),
        heading(2, "JSON Summary Input"),
        paragraph(
            "Run the prompt above with any AI assistant, paste the resulting JSON "
            "into the block below, then change the tag of this page to \"Ready\"."
        ),
        code(RECOVERY_TEMPLATE, "json"),
    ]
