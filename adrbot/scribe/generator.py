"""
Record Generator

Extracts an Architecture Decision Record from a Slack thread with a
schema-constrained LLM call.

A failed generation is never silent and never loses the thread: the prompt is
saved as an error artifact first, then GenerationFailed is raised with a
pointer to that page.
"""

import json
import logging
from typing import Callable, Optional

from pydantic import ValidationError

from ..common.config import LLMConfig
from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from ..common.schemas import CredentialTarget, DecisionRecord, RECORD_OUTPUT_SCHEMA
from .document_writer import DocumentWriter
from .errors import GenerationFailed, MissingCredential, WriteFailed

logger = logging.getLogger("adrbot.scribe.generator")


SYSTEM_PROMPT = """You are an expert software architect.
Your goal is to extract an Architecture Decision Record (ADR) from a Slack conversation thread.
Generate relevant tags (e.g., "Frontend", "Database", "Security", "UX") based on the discussion content.
Output strictly valid JSON.
Do NOT use Markdown formatting (like **, _, [links], etc.) in any of the JSON string values. Output plain text only."""


def build_prompt(thread_text: str) -> str:
    """Full prompt text, also what an error artifact stores"""
    return f"{SYSTEM_PROMPT}\n\nHere is the Slack conversation:\n\n{thread_text}"


class InvalidRecordOutput(ValueError):
    """The backend answered, but not with a complete decision record"""


def parse_record(raw: str) -> DecisionRecord:
    """Validate generation output into a DecisionRecord.

    Raises:
        InvalidRecordOutput: empty, unparseable or incomplete output
    """
    if not raw or not raw.strip():
        raise InvalidRecordOutput("Empty response from AI")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        data = parse_llm_json(raw)
    if not isinstance(data, dict) or not data:
        raise InvalidRecordOutput("AI response is not a JSON object")

    try:
        return DecisionRecord.model_validate(data)
    except ValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise InvalidRecordOutput(f"AI response is not a valid decision record (fields: {', '.join(missing)})") from e


class RecordGenerator:
    """
    Generates DecisionRecords and checkpoints failures.

    The LLM client is built per call from the resolved AI key, so one
    generator serves every channel.
    """

    def __init__(
        self,
        writer: DocumentWriter,
        llm_config: Optional[LLMConfig] = None,
        client_factory: Optional[Callable[[Optional[str]], LLMClient]] = None,
    ):
        self._writer = writer
        self._llm_config = llm_config or LLMConfig()
        self._client_factory = client_factory or (
            lambda api_key: LLMClient.from_config(self._llm_config, api_key=api_key)
        )

    def generate(
        self,
        thread_text: str,
        source_link: str,
        ai_api_key: Optional[str] = None,
        target: Optional[CredentialTarget] = None,
    ) -> DecisionRecord:
        """
        Generate a decision record from thread text.

        Args:
            thread_text: Resolved "{author}: {text}" lines
            source_link: Link back to the Slack thread
            ai_api_key: Per-channel key; the process key is used when absent
            target: Where an error artifact goes if generation fails

        Raises:
            GenerationFailed: generation failed; ``artifact`` is the saved
                prompt page, or None if that could not be written either
        """
        prompt = build_prompt(thread_text)

        try:
            client = self._client_factory(ai_api_key)
            if not client.is_available:
                raise MissingCredential("AI API key is missing")

            raw = client.generate_json(
                prompt,
                schema=RECORD_OUTPUT_SCHEMA,
                max_tokens=self._llm_config.max_tokens,
            )
            record = parse_record(raw)
        except Exception as e:
            logger.error("Decision record generation failed: %s", e)
            raise self._checkpoint(prompt, source_link, target, e) from e

        logger.info("Generated decision record: %s", record.title)
        return record

    def _checkpoint(
        self,
        prompt: str,
        source_link: str,
        target: Optional[CredentialTarget],
        cause: Exception,
    ) -> GenerationFailed:
        """Save the prompt as an error artifact and build the error to raise"""
        logger.info("Saving prompt to Notion as an error log...")
        try:
            artifact = self._writer.write_error_artifact(prompt, source_link, target)
        except WriteFailed as e:
            logger.error("Failed to save error log page: %s", e)
            return GenerationFailed(cause, artifact=None)
        return GenerationFailed(cause, artifact=artifact)
