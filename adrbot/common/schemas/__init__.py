"""
adrbot Schemas

Decision records, conversation threads and document store value types.
"""

from .decision_record import (
    DecisionRecord,
    Alternative,
    Consequences,
    RECORD_OUTPUT_SCHEMA,
    RECOVERY_TEMPLATE,
)
from .conversation import ConversationThread, ThreadMessage
from .documents import CredentialTarget, DocumentHandle, ErrorArtifact

__all__ = [
    "DecisionRecord",
    "Alternative",
    "Consequences",
    "RECORD_OUTPUT_SCHEMA",
    "RECOVERY_TEMPLATE",
    "ConversationThread",
    "ThreadMessage",
    "CredentialTarget",
    "DocumentHandle",
    "ErrorArtifact",
]
