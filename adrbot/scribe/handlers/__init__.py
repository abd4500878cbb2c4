"""
Source Handlers

Handlers convert source-specific webhook payloads to a common ReactionEvent.

Available Handlers:
- SlackHandler: Slack Events API (reaction_added)
"""

from .base import BaseHandler, ReactionEvent
from .slack import SlackHandler

__all__ = [
    "BaseHandler",
    "ReactionEvent",
    "SlackHandler",
]
