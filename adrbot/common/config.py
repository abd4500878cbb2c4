"""
Configuration Management for adrbot

Loads configuration from ~/.adrbot/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("adrbot.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".adrbot"
CONFIG_PATH = CONFIG_DIR / "config.json"
CHANNELS_PATH = CONFIG_DIR / "channels.json"


@dataclass
class NotionConfig:
    """Process-wide Notion credentials (last tier of every fallback)"""
    api_key: str = ""
    database_id: str = ""
    api_version: str = "2025-09-03"
    database_keyword: str = "ADR"
    timeout: float = 30.0


@dataclass
class LLMConfig:
    """Shared LLM provider configuration"""
    provider: str = "google"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    max_tokens: int = 4096


@dataclass
class SlackConfig:
    """Slack app configuration"""
    bot_token: str = ""
    signing_secret: str = ""
    default_trigger_emoji: str = "decision"
    port: int = 3000


@dataclass
class ScribeConfig:
    """Pipeline and recovery configuration"""
    artifact_timezone: str = "Asia/Tokyo"
    recovery_token: str = ""
    channels_path: str = str(CHANNELS_PATH)


@dataclass
class AppConfig:
    """Main adrbot configuration"""
    notion: NotionConfig = field(default_factory=NotionConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    scribe: ScribeConfig = field(default_factory=ScribeConfig)


def _parse_notion_config(data: dict) -> NotionConfig:
    """Parse notion section from config dict"""
    notion_data = data.get("notion", {})
    return NotionConfig(
        api_key=notion_data.get("api_key", ""),
        database_id=notion_data.get("database_id", ""),
        api_version=notion_data.get("api_version", "2025-09-03"),
        database_keyword=notion_data.get("database_keyword", "ADR"),
        timeout=notion_data.get("timeout", 30.0),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "google"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash"),
        max_tokens=llm_data.get("max_tokens", 4096),
    )


def _parse_slack_config(data: dict) -> SlackConfig:
    """Parse slack section from config dict"""
    slack_data = data.get("slack", {})
    return SlackConfig(
        bot_token=slack_data.get("bot_token", ""),
        signing_secret=slack_data.get("signing_secret", ""),
        default_trigger_emoji=slack_data.get("default_trigger_emoji", "decision"),
        port=slack_data.get("port", 3000),
    )


def _parse_scribe_config(data: dict) -> ScribeConfig:
    """Parse scribe section from config dict"""
    scribe_data = data.get("scribe", {})
    return ScribeConfig(
        artifact_timezone=scribe_data.get("artifact_timezone", "Asia/Tokyo"),
        recovery_token=scribe_data.get("recovery_token", ""),
        channels_path=scribe_data.get("channels_path", str(CHANNELS_PATH)),
    )


# Environment variable -> (section, attribute)
_ENV_MAP = {
    "NOTION_API_KEY": ("notion", "api_key"),
    "NOTION_DATABASE_ID": ("notion", "database_id"),
    "NOTION_API_VERSION": ("notion", "api_version"),
    "ADRBOT_LLM_PROVIDER": ("llm", "provider"),
    "ANTHROPIC_API_KEY": ("llm", "anthropic_api_key"),
    "ANTHROPIC_MODEL": ("llm", "anthropic_model"),
    "OPENAI_API_KEY": ("llm", "openai_api_key"),
    "OPENAI_MODEL": ("llm", "openai_model"),
    "GOOGLE_API_KEY": ("llm", "google_api_key"),
    "GEMINI_API_KEY": ("llm", "google_api_key"),
    "GOOGLE_MODEL": ("llm", "google_model"),
    "SLACK_BOT_TOKEN": ("slack", "bot_token"),
    "SLACK_SIGNING_SECRET": ("slack", "signing_secret"),
    "RECOVERY_TOKEN": ("scribe", "recovery_token"),
    "ADRBOT_CHANNELS_PATH": ("scribe", "channels_path"),
}


def load_config() -> AppConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.adrbot/config.json)
    3. Default values
    """
    config = AppConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.notion = _parse_notion_config(data)
            config.llm = _parse_llm_config(data)
            config.slack = _parse_slack_config(data)
            config.scribe = _parse_scribe_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    for env_var, (section, attr) in _ENV_MAP.items():
        val = os.getenv(env_var)
        if val:
            setattr(getattr(config, section), attr, val)

    port = os.getenv("PORT")
    if port:
        try:
            config.slack.port = int(port)
        except ValueError:
            logger.warning("Ignoring invalid PORT %r, using %d", port, config.slack.port)

    return config


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
