"""
adrbot Common Module

Shared infrastructure: configuration, channel store and API clients.
"""

from .config import AppConfig, load_config
from .channel_store import ChannelConfigStore, ConfigProvider
from .llm_client import LLMClient
from .notion_client import NotionClient, NotionError
from .slack_client import SlackGateway

__all__ = [
    "AppConfig",
    "load_config",
    "ChannelConfigStore",
    "ConfigProvider",
    "LLMClient",
    "NotionClient",
    "NotionError",
    "SlackGateway",
]
