"""
Slack Handler

Handles Slack Events API webhooks and converts reactions to ReactionEvents.
"""

import hmac
import hashlib
import time
from typing import Optional, Dict, Any

from .base import BaseHandler, ReactionEvent


class SlackHandler(BaseHandler):
    """
    Handler for Slack Events API webhooks.

    Processes:
    - reaction_added events on messages

    Ignores:
    - Reactions on files and file comments
    - Every other event type
    """

    def __init__(self, signing_secret: str = ""):
        """
        Initialize Slack handler.

        Args:
            signing_secret: Slack signing secret for verification
        """
        super().__init__("slack")
        self._signing_secret = signing_secret

    async def parse_event(self, raw_data: Dict[str, Any]) -> Optional[ReactionEvent]:
        """
        Parse Slack event into ReactionEvent.

        Args:
            raw_data: Raw Slack event data

        Returns:
            ReactionEvent or None if event should be ignored
        """
        if raw_data.get("type") != "event_callback":
            return None

        event = raw_data.get("event", {})
        if event.get("type") != "reaction_added":
            return None

        item = event.get("item", {})
        if item.get("type") != "message":
            return None

        return ReactionEvent(
            reaction=event.get("reaction", ""),
            user=event.get("user", ""),
            channel=item.get("channel", ""),
            item_ts=item.get("ts", ""),
            workspace_id=raw_data.get("team_id", ""),
            event_ts=event.get("event_ts"),
            raw_data=event,
        )

    def verify_signature(
        self,
        body: bytes,
        signature: str,
        timestamp: str
    ) -> bool:
        """
        Verify Slack request signature.

        Args:
            body: Raw request body
            signature: X-Slack-Signature header
            timestamp: X-Slack-Request-Timestamp header

        Returns:
            True if signature is valid
        """
        if not self._signing_secret:
            # Skip verification if no secret configured
            return True

        if not signature or not timestamp:
            return False

        # Check timestamp is recent (within 5 minutes)
        try:
            ts = int(timestamp)
            if abs(time.time() - ts) > 300:
                return False
        except ValueError:
            return False

        sig_basestring = f"v0:{timestamp}:{body.decode('utf-8')}"
        expected_sig = "v0=" + hmac.new(
            self._signing_secret.encode('utf-8'),
            sig_basestring.encode('utf-8'),
            hashlib.sha256
        ).hexdigest()

        return hmac.compare_digest(expected_sig, signature)

    def is_url_verification(self, raw_data: Dict[str, Any]) -> bool:
        """Check if request is URL verification"""
        return raw_data.get("type") == "url_verification"

    def get_challenge(self, raw_data: Dict[str, Any]) -> Optional[str]:
        """Get challenge for URL verification"""
        if self.is_url_verification(raw_data):
            return raw_data.get("challenge")
        return None
