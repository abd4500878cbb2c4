"""
Reaction Pipeline

Wires the happy path to a Slack reaction:

1. Check the reaction is the channel's trigger emoji
2. Resolve the Notion target (channel > workspace > process default)
3. Resolve the thread
4. Generate the decision record (failures leave an error artifact)
5. Write the record and reply with its URL

Every run that passes step 1 posts exactly one reply to the thread.
"""

import logging
from pathlib import Path
from typing import Optional

from ..common.channel_store import (
    ChannelConfigStore,
    ConfigProvider,
    resolve_access_token,
    resolve_credential_target,
)
from ..common.config import AppConfig
from ..common.notion_client import NotionClient
from ..common.schemas import CredentialTarget, DocumentHandle
from ..common.slack_client import SlackGateway, slack_permalink
from .document_writer import DocumentWriter
from .errors import MissingCredential, ScribeError
from .generator import RecordGenerator
from .handlers import ReactionEvent
from .messages import NOT_CONNECTED, NO_DATABASE, RECORD_CREATED, UNEXPECTED_ERROR
from .recovery import RecoverySweeper, SweepReport
from .thread_resolver import ThreadResolver

logger = logging.getLogger("adrbot.scribe.pipeline")


class ReactionPipeline:
    """Runs one reaction through resolve, generate and write"""

    def __init__(
        self,
        config: AppConfig,
        config_provider: ConfigProvider,
        slack: SlackGateway,
        notion: NotionClient,
        writer: Optional[DocumentWriter] = None,
        generator: Optional[RecordGenerator] = None,
        resolver: Optional[ThreadResolver] = None,
    ):
        self._config = config
        self._provider = config_provider
        self._slack = slack
        self._notion = notion
        self._writer = writer or DocumentWriter(
            notion,
            default=config.notion,
            artifact_timezone=config.scribe.artifact_timezone,
        )
        self._generator = generator or RecordGenerator(self._writer, config.llm)
        self._resolver = resolver or ThreadResolver(slack)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        config_provider: Optional[ConfigProvider] = None,
    ) -> "ReactionPipeline":
        """Build the pipeline and its clients from loaded configuration"""
        notion = NotionClient(api_version=config.notion.api_version, timeout=config.notion.timeout)
        slack = SlackGateway(token=config.slack.bot_token)
        provider = config_provider or ChannelConfigStore(Path(config.scribe.channels_path))
        return cls(config, provider, slack, notion)

    def check_default_database(self) -> bool:
        """True when the process default database is reachable with its key"""
        default = self._config.notion
        if not default.api_key or not default.database_id:
            return False
        return self._notion.validate_database(default.database_id, token=default.api_key)

    def close(self) -> None:
        self._notion.close()

    # -------------------------------------------------------------------------
    # Trigger
    # -------------------------------------------------------------------------

    def trigger_emoji_for(self, channel_id: str) -> str:
        channel = self._provider.get_channel_config(channel_id)
        emoji = channel.trigger_emoji if channel and channel.trigger_emoji else self._config.slack.default_trigger_emoji
        return emoji.strip(":")

    def is_trigger(self, event: ReactionEvent) -> bool:
        return event.is_valid and event.reaction == self.trigger_emoji_for(event.channel)

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def handle(self, event: ReactionEvent) -> Optional[DocumentHandle]:
        """
        Process one reaction event.

        Returns:
            Handle of the created record page, or None when the reaction was
            ignored or the run failed (the failure is replied to the thread)
        """
        if not self.is_trigger(event):
            logger.debug("Ignoring reaction %r in %s", event.reaction, event.channel)
            return None

        logger.info("Trigger reaction on %s in %s", event.item_ts, event.channel)
        reply_ts = event.item_ts

        try:
            target = self._resolve_target(event)

            thread = self._resolver.resolve(event.channel, event.item_ts)
            reply_ts = thread.root_ts

            channel = self._provider.get_channel_config(event.channel)
            source_link = slack_permalink(event.channel, event.item_ts)
            record = self._generator.generate(
                thread.text,
                source_link,
                ai_api_key=channel.ai_api_key if channel else None,
                target=target,
            )
            handle = self._writer.write_record(record, source_link, target)
        except ScribeError as e:
            logger.warning("Pipeline stopped for %s in %s: %s", event.item_ts, event.channel, e)
            self._reply(event.channel, getattr(e, "root_ts", "") or reply_ts, e.user_message)
            return None
        except Exception as e:
            logger.exception("Unexpected pipeline error for %s in %s: %s", event.item_ts, event.channel, e)
            self._reply(event.channel, reply_ts, UNEXPECTED_ERROR)
            return None

        self._reply(event.channel, reply_ts, RECORD_CREATED.format(url=handle.url))
        return handle

    def _resolve_target(self, event: ReactionEvent) -> CredentialTarget:
        target = resolve_credential_target(
            self._provider, event.channel, event.workspace_id, default=self._config.notion,
        )
        if target is not None:
            return target
        if not resolve_access_token(self._provider, event.channel, event.workspace_id, default=self._config.notion):
            raise MissingCredential(NOT_CONNECTED)
        raise MissingCredential(NO_DATABASE)

    def _reply(self, channel_id: str, thread_ts: str, text: str) -> None:
        try:
            self._slack.post_message(channel_id, thread_ts, text)
        except Exception as e:
            logger.error("Failed to post reply to %s: %s", channel_id, e)

    # -------------------------------------------------------------------------
    # Recovery
    # -------------------------------------------------------------------------

    def run_recovery_sweep(self) -> SweepReport:
        """Promote every "Ready" error artifact across configured channels"""
        sweeper = RecoverySweeper(self._notion, self._writer)
        return sweeper.sweep(self._provider)
