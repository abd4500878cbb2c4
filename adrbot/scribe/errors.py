"""
Scribe error taxonomy.

Every error carries the text that gets posted back to the Slack thread, so
the pipeline can turn any of them into exactly one reply.
"""

from dataclasses import dataclass
from typing import List, Optional

from ..common.schemas import DocumentHandle


class ScribeError(Exception):
    """Base class for pipeline errors"""

    @property
    def user_message(self) -> str:
        return str(self)


class EmptyThread(ScribeError):
    """No processable messages left after filtering"""

    def __init__(self, channel_id: str = "", root_ts: str = ""):
        super().__init__("No messages to process were found in this thread (bot messages are ignored).")
        self.channel_id = channel_id
        self.root_ts = root_ts


class MissingCredential(ScribeError):
    """No usable AI or document store credential"""

    def __init__(self, message: str):
        super().__init__(message)


class GenerationFailed(ScribeError):
    """The generation step failed; ``artifact`` points at the saved prompt"""

    def __init__(self, cause: BaseException, artifact: Optional[DocumentHandle] = None):
        self.cause = cause
        self.artifact = artifact
        if artifact is not None:
            message = (
                "AI generation failed, but the prompt was saved to Notion. "
                "Paste the JSON into the page and change its tag to \"Ready\" to recover it:\n"
                f"{artifact.url}"
            )
        else:
            message = (
                "AI generation failed and the error log could not be saved to Notion either. "
                "Please check the Notion permissions."
            )
        super().__init__(message)


@dataclass
class WriteAttempt:
    """One try of the document writer against one target"""
    tier: str
    database_id: str
    ok: bool
    error: Optional[str] = None
    handle: Optional[DocumentHandle] = None

    def describe(self) -> str:
        status = "ok" if self.ok else f"failed: {self.error}"
        return f"[{self.tier}] {self.database_id or '(none)'} {status}"


class WriteFailed(ScribeError):
    """Every target of the chain failed"""

    def __init__(self, attempts: List[WriteAttempt]):
        self.attempts = attempts
        trail = "; ".join(a.describe() for a in attempts) or "no target available"
        super().__init__(f"Failed to write the Notion page ({trail})")

    @property
    def user_message(self) -> str:
        return "Failed to create the Notion page. Please check the Notion connection and database settings."


class MalformedArtifact(ScribeError):
    """A "Ready" page whose JSON block is missing or invalid"""

    def __init__(self, page_id: str, reason: str):
        super().__init__(f"Page {page_id}: {reason}")
        self.page_id = page_id
        self.reason = reason
