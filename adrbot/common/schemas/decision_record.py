"""
Decision Record Schema

The structured output of the generation step, and the shape a user pastes into
an error artifact for recovery. Both paths validate through DecisionRecord.
"""

from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator


# ============================================================================
# Sub-models
# ============================================================================

class Alternative(BaseModel):
    """An option that was weighed against the chosen decision"""
    option: str
    decision: str = ""
    reasoning: str = ""


class Consequences(BaseModel):
    """Consequences split by polarity"""
    positive: Optional[Union[List[str], str]] = None
    negative: Optional[Union[List[str], str]] = None


# ============================================================================
# Main Schema
# ============================================================================

class DecisionRecord(BaseModel):
    """
    Architecture Decision Record.

    Required: title, tags, context, decision, consequences. A blank title,
    context or decision is rejected as well, so a half-filled recovery
    template never becomes a finished page.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    tags: List[str]
    status: Optional[str] = None
    date: Optional[str] = None
    deciders: Optional[List[str]] = None
    context: str
    decision: str
    drivers: Optional[List[str]] = None
    alternatives: Optional[List[Union[Alternative, str]]] = Field(
        default=None,
        validation_alias=AliasChoices("alternatives", "alternatives_considered"),
    )
    consequences: Union[str, List[str], Consequences]
    manual_fallback_text: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("manual_fallback_text", "manualFallbackText", "manualPrompt"),
    )

    @field_validator("title", "context", "decision")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: List[str]) -> List[str]:
        seen = []
        for tag in value:
            tag = str(tag).strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    def body(self) -> dict:
        """Field values in declaration order, without unset optionals"""
        return self.model_dump(exclude_none=True)


# Fixed output schema handed to the generation backend.
RECORD_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
        "status": {"type": "string"},
        "context": {"type": "string"},
        "decision": {"type": "string"},
        "drivers": {"type": "array", "items": {"type": "string"}},
        "alternatives": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "option": {"type": "string"},
                    "decision": {"type": "string"},
                    "reasoning": {"type": "string"},
                },
                "required": ["option", "decision", "reasoning"],
            },
        },
        "consequences": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["title", "tags", "context", "decision", "consequences"],
}

# Template a user fills in on an error artifact page
RECOVERY_TEMPLATE = """{
  "title": "",
  "status": "Accepted",
  "context": "",
  "decision": "",
  "consequences": [],
  "tags": []
}"""
