"""
Document store value types.

CredentialTarget is resolved by the configuration layer and only consumed
here; DocumentHandle is what a successful write gives back.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CredentialTarget:
    """A (database, credential) pair identifying where a document goes"""
    access_token: str
    database_id: str
    data_source_id: Optional[str] = None


@dataclass(frozen=True)
class DocumentHandle:
    id: str
    url: str


@dataclass
class ErrorArtifact:
    """A failed generation attempt, kept so the prompt can be replayed"""
    prompt_text: str
    source_link: str
    timestamp: str
