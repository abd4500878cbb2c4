"""
Recovery Sweeper

Promotes error artifacts that a user completed by hand into finished decision
records.

For every configured channel database:
1. resolve the credential (channel token, else workspace token, else skip)
2. resolve the data source (cached id, else looked up and cached)
3. query pages tagged "Ready"
4. per page: parse the JSON block, write a fresh record page, then archive
   the artifact

The artifact is archived only after the new page exists, so a failed write
leaves it "Ready" for the next sweep. Nothing here raises: failures are
logged and counted per target and per page.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..common.channel_store import ConfigProvider
from ..common.notion_client import NotionClient, page_source_link, plain_text
from ..common.schemas import CredentialTarget, DecisionRecord, DocumentHandle
from .document_writer import DocumentWriter, READY_TAG
from .errors import MalformedArtifact

logger = logging.getLogger("adrbot.scribe.recovery")


@dataclass
class SweepReport:
    """Outcome of one recovery sweep"""
    targets_checked: int = 0
    targets_skipped: int = 0
    targets_failed: int = 0
    ready_pages: int = 0
    recovered: List[str] = field(default_factory=list)
    malformed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RecoverySweeper:
    """Sweeps every configured database for "Ready" error artifacts"""

    def __init__(self, notion: NotionClient, writer: DocumentWriter):
        self._notion = notion
        self._writer = writer

    def sweep(self, config_provider: ConfigProvider) -> SweepReport:
        """Run one sweep over every configured channel target. Never raises."""
        report = SweepReport()

        try:
            entries = config_provider.list_all_channel_targets()
        except Exception as e:
            logger.error("Could not list channel configs: %s", e)
            return report

        logger.info("Starting recovery sweep over %d channel(s)", len(entries))

        seen = set()
        for channel_id, workspace_id, channel_target in entries:
            target = self._resolve_target(config_provider, channel_id, workspace_id, channel_target)
            if target is None:
                report.targets_skipped += 1
                continue

            # Several channels may share one database
            key = (target.access_token, target.database_id)
            if key in seen:
                continue
            seen.add(key)

            report.targets_checked += 1
            try:
                self._sweep_target(config_provider, channel_id, target, report)
            except Exception as e:
                logger.error(
                    "Error querying database %s (workspace %s): %s",
                    target.database_id, workspace_id, e,
                )
                report.targets_failed += 1

        logger.info(
            "Recovery sweep finished: %d recovered, %d malformed, %d failed",
            len(report.recovered), len(report.malformed), len(report.failed),
        )
        return report

    def _resolve_target(
        self,
        config_provider: ConfigProvider,
        channel_id: str,
        workspace_id: str,
        channel_target: CredentialTarget,
    ) -> Optional[CredentialTarget]:
        token = channel_target.access_token
        if not token:
            try:
                workspace_target = config_provider.get_workspace_target(workspace_id)
            except Exception as e:
                logger.warning("Could not read workspace config %s: %s", workspace_id, e)
                workspace_target = None
            token = workspace_target.access_token if workspace_target else ""

        if not token:
            logger.warning(
                "Skipping channel %s: no Notion access token for workspace %s",
                channel_id, workspace_id,
            )
            return None
        if not channel_target.database_id:
            logger.warning("Skipping channel %s: no Notion database configured", channel_id)
            return None

        return CredentialTarget(
            access_token=token,
            database_id=channel_target.database_id,
            data_source_id=channel_target.data_source_id,
        )

    def _data_source_id(
        self,
        config_provider: ConfigProvider,
        channel_id: str,
        target: CredentialTarget,
    ) -> Optional[str]:
        if target.data_source_id:
            return target.data_source_id

        data_source_id = self._notion.data_source_id_for(target.database_id, token=target.access_token)
        if data_source_id:
            try:
                config_provider.cache_data_source_id(channel_id, data_source_id)
            except Exception as e:
                logger.warning("Could not cache data source id for %s: %s", channel_id, e)
        return data_source_id

    def _sweep_target(
        self,
        config_provider: ConfigProvider,
        channel_id: str,
        target: CredentialTarget,
        report: SweepReport,
    ) -> None:
        data_source_id = self._data_source_id(config_provider, channel_id, target)
        if not data_source_id:
            logger.warning("Skipping database %s: no data source id found", target.database_id)
            return

        pages = self._notion.query_by_tag(data_source_id, READY_TAG, token=target.access_token)
        if not pages:
            return

        logger.info("Found %d ready page(s) in database %s", len(pages), target.database_id)
        report.ready_pages += len(pages)

        for page in pages:
            page_id = page.get("id", "")
            try:
                handle = self.recover_page(page, target)
            except MalformedArtifact as e:
                logger.warning("Leaving page untouched: %s", e)
                report.malformed.append(page_id)
            except Exception as e:
                logger.error("Failed to process page %s: %s", page_id, e)
                report.failed.append(page_id)
            else:
                report.recovered.append(handle.url)

    def recover_page(self, page: Dict[str, Any], target: CredentialTarget) -> DocumentHandle:
        """Write the page's record as a new page, then archive the artifact"""
        page_id = page["id"]
        logger.info("Processing ready page: %s", page.get("url", page_id))

        record = self.extract_record(page_id, target.access_token)
        source_link = page_source_link(page)

        handle = self._writer.write_record(record, source_link, target)
        logger.info("Created decision record page: %s", handle.url)

        self._notion.archive_page(page_id, token=target.access_token)
        logger.info("Archived ready page: %s", page.get("url", page_id))
        return handle

    def extract_record(self, page_id: str, token: str) -> DecisionRecord:
        """Parse the first JSON code block of a page.

        Raises:
            MalformedArtifact: no JSON block, or it does not hold a valid record
        """
        blocks = self._notion.list_blocks(page_id, token=token)
        json_block = next(
            (
                b for b in blocks
                if b.get("type") == "code" and b.get("code", {}).get("language") == "json"
            ),
            None,
        )
        if json_block is None:
            raise MalformedArtifact(page_id, "no JSON block found")

        text = plain_text(json_block["code"].get("rich_text", []))
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedArtifact(page_id, f"invalid JSON: {e}") from e

        try:
            return DecisionRecord.model_validate(data)
        except ValidationError as e:
            raise MalformedArtifact(page_id, f"not a valid decision record: {e.error_count()} error(s)") from e
