"""
Channel Configuration Store

Per-channel and per-workspace Notion targets, trigger emoji and AI key.

ConfigProvider is the read/write contract the pipeline and the recovery sweep
depend on. ChannelConfigStore implements it on top of a JSON file
(~/.adrbot/channels.json); any other backend only has to implement the same
methods.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .config import CHANNELS_PATH, NotionConfig
from .schemas import CredentialTarget

logger = logging.getLogger("adrbot.common.channel_store")

DEFAULT_TRIGGER_EMOJI = "decision"


@dataclass
class ChannelConfig:
    """Configuration of one Slack channel"""
    workspace_id: str
    channel_id: str
    notion_database_id: Optional[str] = None
    notion_data_source_id: Optional[str] = None
    notion_access_token: Optional[str] = None
    ai_api_key: Optional[str] = None
    trigger_emoji: str = DEFAULT_TRIGGER_EMOJI


@dataclass
class WorkspaceConfig:
    """Configuration shared by every channel of a Slack workspace"""
    workspace_id: str
    notion_access_token: Optional[str] = None
    notion_database_id: Optional[str] = None


class ConfigProvider(ABC):
    """Configuration collaborator consumed by the pipeline and recovery sweep"""

    @abstractmethod
    def get_channel_config(self, channel_id: str) -> Optional[ChannelConfig]:
        pass

    @abstractmethod
    def get_workspace_config(self, workspace_id: str) -> Optional[WorkspaceConfig]:
        pass

    @abstractmethod
    def list_channel_configs(self) -> List[ChannelConfig]:
        pass

    @abstractmethod
    def cache_data_source_id(self, channel_id: str, data_source_id: str) -> None:
        pass

    def get_channel_target(self, channel_id: str) -> Optional[CredentialTarget]:
        """Channel-level target; the token is empty when the channel has none"""
        config = self.get_channel_config(channel_id)
        if config is None:
            return None
        return CredentialTarget(
            access_token=config.notion_access_token or "",
            database_id=config.notion_database_id or "",
            data_source_id=config.notion_data_source_id,
        )

    def get_workspace_target(self, workspace_id: str) -> Optional[CredentialTarget]:
        config = self.get_workspace_config(workspace_id)
        if config is None:
            return None
        return CredentialTarget(
            access_token=config.notion_access_token or "",
            database_id=config.notion_database_id or "",
        )

    def list_all_channel_targets(self) -> List[Tuple[str, str, CredentialTarget]]:
        """(channel_id, workspace_id, channel-level target) for every channel"""
        targets = []
        for config in self.list_channel_configs():
            target = self.get_channel_target(config.channel_id)
            if target is not None:
                targets.append((config.channel_id, config.workspace_id, target))
        return targets


def resolve_credential_target(
    provider: ConfigProvider,
    channel_id: str,
    workspace_id: str,
    default: Optional[NotionConfig] = None,
) -> Optional[CredentialTarget]:
    """
    Resolve the Notion target for a channel.

    Each of token and database is taken from the channel, else the workspace,
    else the process default. Returns None when either stays unresolved.
    """
    channel = provider.get_channel_target(channel_id)
    workspace = provider.get_workspace_target(workspace_id) if workspace_id else None

    def first(*values: Optional[str]) -> str:
        return next((v for v in values if v), "")

    token = first(
        channel.access_token if channel else None,
        workspace.access_token if workspace else None,
        default.api_key if default else None,
    )
    database_id = first(
        channel.database_id if channel else None,
        workspace.database_id if workspace else None,
        default.database_id if default else None,
    )
    if not token or not database_id:
        return None

    # A cached data source only belongs to the channel's own database
    data_source_id = None
    if channel and channel.database_id == database_id:
        data_source_id = channel.data_source_id
    return CredentialTarget(access_token=token, database_id=database_id, data_source_id=data_source_id)


def resolve_access_token(
    provider: ConfigProvider,
    channel_id: str,
    workspace_id: str,
    default: Optional[NotionConfig] = None,
) -> str:
    """Notion token for a channel with the same precedence, "" when none"""
    channel = provider.get_channel_target(channel_id)
    workspace = provider.get_workspace_target(workspace_id) if workspace_id else None
    for token in (
        channel.access_token if channel else None,
        workspace.access_token if workspace else None,
        default.api_key if default else None,
    ):
        if token:
            return token
    return ""


def extract_database_id(url: str) -> Optional[str]:
    """Extract the database id from a Notion database URL"""
    if not url:
        return None
    try:
        path = urlparse(url.strip()).path
    except ValueError:
        return None

    last_part = path.rstrip("/").split("/")[-1]
    if not last_part:
        return None
    match = re.search(r"[a-f0-9]{32}", last_part)
    return match.group(0) if match else last_part


class ChannelConfigStore(ConfigProvider):
    """
    JSON-file backed configuration store.

    File layout:
        {"channels": {"C123": {...}}, "workspaces": {"T123": {...}}}
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else CHANNELS_PATH
        self._channels: Dict[str, ChannelConfig] = {}
        self._workspaces: Dict[str, WorkspaceConfig] = {}
        self._load()

    def _load(self) -> None:
        """Load configs from disk"""
        if not self._path.exists():
            return

        try:
            with open(self._path) as f:
                data = json.load(f)

            self._channels = {
                channel_id: ChannelConfig(**item)
                for channel_id, item in data.get("channels", {}).items()
            }
            self._workspaces = {
                workspace_id: WorkspaceConfig(**item)
                for workspace_id, item in data.get("workspaces", {}).items()
            }
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning("Failed to load channel configs: %s", e)
            self._channels = {}
            self._workspaces = {}

    def _save(self) -> None:
        """Save configs to disk"""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "channels": {cid: asdict(c) for cid, c in self._channels.items()},
            "workspaces": {wid: asdict(w) for wid, w in self._workspaces.items()},
        }
        with open(self._path, "w") as f:
            json.dump(data, f, indent=2)

        self._path.chmod(0o600)

    def get_channel_config(self, channel_id: str) -> Optional[ChannelConfig]:
        return self._channels.get(channel_id)

    def get_workspace_config(self, workspace_id: str) -> Optional[WorkspaceConfig]:
        return self._workspaces.get(workspace_id)

    def list_channel_configs(self) -> List[ChannelConfig]:
        return list(self._channels.values())

    def save_channel_config(self, config: ChannelConfig) -> None:
        config.trigger_emoji = (config.trigger_emoji or DEFAULT_TRIGGER_EMOJI).strip(":")
        self._channels[config.channel_id] = config
        self._save()

    def save_workspace_config(self, config: WorkspaceConfig) -> None:
        self._workspaces[config.workspace_id] = config
        self._save()

    def cache_data_source_id(self, channel_id: str, data_source_id: str) -> None:
        config = self._channels.get(channel_id)
        if config is None:
            return
        config.notion_data_source_id = data_source_id
        self._save()
