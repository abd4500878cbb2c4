"""Conversation thread handed to the generation step."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class ThreadMessage:
    author_id: str
    text: str
    timestamp: str
    is_bot: bool = False


@dataclass
class ConversationThread:
    """A root message plus its replies, noise already filtered out"""
    channel_id: str
    root_ts: str
    messages: List[ThreadMessage] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(f"{m.author_id}: {m.text}" for m in self.messages)

    def __len__(self) -> int:
        return len(self.messages)
