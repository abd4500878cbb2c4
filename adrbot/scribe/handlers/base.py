"""
Base Handler

Abstract base class for source-specific event handlers.
Provides a common interface for converting webhook payloads to trigger events.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any


@dataclass
class ReactionEvent:
    """
    A reaction added to a message.

    This is the trigger the pipeline works from, regardless of how the
    webhook payload was shaped.
    """
    reaction: str
    user: str
    channel: str
    item_ts: str
    workspace_id: str = ""
    event_ts: Optional[str] = None
    raw_data: Optional[Dict[str, Any]] = None

    @property
    def is_valid(self) -> bool:
        """Check if event has minimum required fields"""
        return bool(self.reaction and self.channel and self.item_ts)


class BaseHandler(ABC):
    """
    Abstract base class for source handlers.

    Each handler must implement:
    - parse_event: Convert raw event to ReactionEvent
    - verify_signature: Verify webhook signature (if applicable)
    """

    def __init__(self, source_name: str):
        """
        Initialize handler.

        Args:
            source_name: Name of the source (e.g., "slack")
        """
        self.source_name = source_name

    @abstractmethod
    async def parse_event(self, raw_data: Dict[str, Any]) -> Optional[ReactionEvent]:
        """
        Parse raw event data into a ReactionEvent.

        Args:
            raw_data: Raw event data from the source

        Returns:
            ReactionEvent or None if event should be ignored
        """
        pass

    @abstractmethod
    def verify_signature(
        self,
        body: bytes,
        signature: str,
        timestamp: str
    ) -> bool:
        """
        Verify the webhook signature.

        Args:
            body: Raw request body
            signature: Signature from headers
            timestamp: Timestamp from headers

        Returns:
            True if signature is valid
        """
        pass
