"""
Replies the bot posts to Slack threads, and the patterns that recognise them
again when a thread is resolved.
"""

import re

RECORD_CREATED = ":white_check_mark: Created the decision record in Notion!\n{url}"
NOT_CONNECTED = (
    ":warning: Notion is not connected yet. Use `/adr-config` to connect Notion."
)
NO_DATABASE = (
    ":warning: No Notion database is configured. Use `/adr-config` to set one."
)
UNEXPECTED_ERROR = ":x: Decision record generation failed (unknown error)."

# Announcements the bot posts itself; kept out of future generation input
NOTIFICATION_PATTERNS = [
    re.compile(r"Created the decision record in Notion"),
    re.compile(r"Failed to create the decision record"),
    re.compile(r"Decision record generation failed"),
    re.compile(r"AI generation failed"),
    re.compile(r"Failed to create the Notion page"),
]


def is_notification(text: str) -> bool:
    return any(pattern.search(text or "") for pattern in NOTIFICATION_PATTERNS)
