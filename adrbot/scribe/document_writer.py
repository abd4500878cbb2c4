"""
Document Writer

Commits decision records and error artifacts to Notion.

Finished records are written once, to the requested target. Error artifacts
must not be lost, so they go through a fallback chain:

1. the requested target (database + credential)
2. the best database reachable with the same credential
   (title containing the domain keyword, else the first one)
3. the process default credential and database, then the best database
   reachable with the default credential

Artifacts are upserted by source link: a retried failure for the same thread
rewrites the pending artifact page instead of adding another one.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..common.config import NotionConfig
from ..common.notion_client import (
    NotionClient,
    TITLE_PROPERTY,
    TAGS_PROPERTY,
    SOURCE_LINK_PROPERTY,
    title_property,
    tags_property,
    url_property,
)
from ..common.schemas import CredentialTarget, DecisionRecord, DocumentHandle, ErrorArtifact
from .block_builder import render_artifact_page, render_record_page, sanitize
from .errors import WriteAttempt, WriteFailed

logger = logging.getLogger("adrbot.scribe.writer")

PENDING_TAG = "Pending"
READY_TAG = "Ready"

TIER_REQUESTED = "requested"
TIER_CREDENTIAL_SEARCH = "credential-search"
TIER_DEFAULT = "default"
TIER_DEFAULT_SEARCH = "default-search"


class FallbackChain:
    """
    Tries targets in order until one write succeeds.

    Each step resolves its target lazily, so a database search only runs when
    every earlier step has failed. A (token, database) pair is attempted at
    most once. Every outcome is kept as a WriteAttempt; exhaustion raises
    WriteFailed with the whole trail.
    """

    def __init__(self, write: Callable[[CredentialTarget, str], DocumentHandle]):
        self._write = write
        self._steps: List[Tuple[str, Callable[[], Optional[CredentialTarget]]]] = []

    def add(self, tier: str, resolve: Callable[[], Optional[CredentialTarget]]) -> "FallbackChain":
        self._steps.append((tier, resolve))
        return self

    def run(self) -> DocumentHandle:
        attempts: List[WriteAttempt] = []
        tried = set()

        for tier, resolve in self._steps:
            try:
                target = resolve()
            except Exception as e:
                logger.warning("[%s] Could not resolve a target: %s", tier, e)
                attempts.append(WriteAttempt(tier=tier, database_id="", ok=False, error=f"target lookup failed: {e}"))
                continue

            if target is None or not target.access_token or not target.database_id:
                logger.debug("[%s] No target available, skipping", tier)
                continue

            key = (target.access_token, target.database_id)
            if key in tried:
                continue
            tried.add(key)

            try:
                handle = self._write(target, tier)
            except Exception as e:
                logger.warning("[%s] Write to database %s failed: %s", tier, target.database_id, e)
                attempts.append(WriteAttempt(tier=tier, database_id=target.database_id, ok=False, error=str(e)))
                continue

            attempts.append(WriteAttempt(tier=tier, database_id=target.database_id, ok=True, handle=handle))
            if tier != TIER_REQUESTED:
                logger.info("[%s] Wrote to fallback database %s", tier, target.database_id)
            return handle

        error = WriteFailed(attempts)
        logger.error("All write targets failed: %s", error)
        raise error


class DocumentWriter:
    """
    Writes pages into Notion databases.

    Credentials are passed per call inside CredentialTarget; the writer keeps
    no per-credential state.
    """

    def __init__(
        self,
        notion: NotionClient,
        default: Optional[NotionConfig] = None,
        artifact_timezone: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._notion = notion
        self._default = default or NotionConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        try:
            self._tz = ZoneInfo(artifact_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using UTC for artifact titles", artifact_timezone)
            self._tz = timezone.utc

    # -------------------------------------------------------------------------
    # Finished records
    # -------------------------------------------------------------------------

    def write_record(
        self,
        record: DecisionRecord,
        source_link: str,
        target: CredentialTarget,
    ) -> DocumentHandle:
        """Create a decision record page at ``target``.

        Raises:
            WriteFailed: the page could not be created
        """
        chain = FallbackChain(lambda t, tier: self._create_record_page(record, source_link, t))
        chain.add(TIER_REQUESTED, lambda: target)
        handle = chain.run()
        logger.info("Created decision record page: %s", handle.url)
        return handle

    def _create_record_page(
        self,
        record: DecisionRecord,
        source_link: str,
        target: CredentialTarget,
    ) -> DocumentHandle:
        properties = {
            TITLE_PROPERTY: title_property(sanitize(record.title)),
            TAGS_PROPERTY: tags_property(record.tags),
            SOURCE_LINK_PROPERTY: url_property(source_link),
        }
        children = render_record_page(record, source_link)
        return self._notion.create_page(
            target.database_id, properties, children, token=target.access_token,
        )

    # -------------------------------------------------------------------------
    # Error artifacts
    # -------------------------------------------------------------------------

    def write_error_artifact(
        self,
        prompt_text: str,
        source_link: str,
        target: Optional[CredentialTarget] = None,
    ) -> DocumentHandle:
        """Save a failed prompt so it can be completed by hand and recovered.

        Raises:
            WriteFailed: every tier of the fallback chain failed
        """
        artifact = ErrorArtifact(
            prompt_text=prompt_text,
            source_link=source_link,
            timestamp=self._clock().astimezone(self._tz).strftime("%Y-%m-%d %H:%M:%S"),
        )

        chain = FallbackChain(
            lambda t, tier: self._upsert_artifact(artifact, t, fallback=tier != TIER_REQUESTED)
        )
        # Searches skip databases the same credential has already failed on
        if target is not None:
            chain.add(TIER_REQUESTED, lambda: target)
            if target.access_token:
                chain.add(
                    TIER_CREDENTIAL_SEARCH,
                    lambda: self._search_target(target.access_token, exclude=[target.database_id]),
                )

        default = self.default_target()
        if default is not None:
            excluded = [default.database_id]
            if target is not None and target.access_token == default.access_token:
                excluded.append(target.database_id)
            chain.add(TIER_DEFAULT, lambda: default)
            chain.add(
                TIER_DEFAULT_SEARCH,
                lambda: self._search_target(default.access_token, exclude=excluded),
            )

        handle = chain.run()
        logger.info("Error log page saved: %s", handle.url)
        return handle

    def default_target(self) -> Optional[CredentialTarget]:
        """Process-wide credential and database, if both are configured"""
        if not self._default.api_key or not self._default.database_id:
            return None
        return CredentialTarget(access_token=self._default.api_key, database_id=self._default.database_id)

    def _search_target(self, token: str, exclude: Iterable[str] = ()) -> Optional[CredentialTarget]:
        database_id = self._notion.find_best_database(
            token=token, keyword=self._default.database_keyword, exclude=exclude,
        )
        if not database_id:
            return None
        return CredentialTarget(access_token=token, database_id=database_id)

    def _upsert_artifact(
        self,
        artifact: ErrorArtifact,
        target: CredentialTarget,
        fallback: bool = False,
    ) -> DocumentHandle:
        token = target.access_token
        title = f"Error Log{' (Fallback)' if fallback else ''}: {artifact.timestamp}"
        properties = {
            TITLE_PROPERTY: title_property(title),
            TAGS_PROPERTY: tags_property([PENDING_TAG]),
        }
        children = render_artifact_page(artifact.prompt_text)

        existing = None
        if artifact.source_link:
            # Pages already marked Ready hold a user's answer and are left alone
            existing = self._notion.find_by_source_link(
                target.database_id,
                artifact.source_link,
                token=token,
                any_tags=[PENDING_TAG],
                data_source_id=target.data_source_id,
            )

        if existing:
            logger.info("Found existing error log page %s, updating", existing)
            self._notion.update_properties(existing, properties, token=token)
            self._notion.replace_blocks(existing, children, token=token)
            page = self._notion.retrieve_page(existing, token=token)
            return DocumentHandle(id=existing, url=page.get("url", ""))

        properties[SOURCE_LINK_PROPERTY] = url_property(artifact.source_link)
        return self._notion.create_page(target.database_id, properties, children, token=token)
