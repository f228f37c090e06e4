"""
Wire schemas for the recovery intake API.

Field names are snake_case in Python and camelCase on the wire
(the mobile client's contract). Both spellings are accepted on input.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EquipmentPreference(str, Enum):
    """What the user said they can train with."""
    BODYWEIGHT_ONLY = "bodyweight_only"
    HAS_BANDS = "has_bands"
    UNKNOWN = "unknown"


class RedFlagSeverity(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"


class ConversationMessage(CamelModel):
    """One immutable turn of the intake conversation."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    role: Literal["user", "assistant"]
    text: str

    @model_validator(mode="before")
    @classmethod
    def _accept_content_field(cls, data: Any) -> Any:
        # Older clients send {"role", "content"}
        if isinstance(data, dict) and "text" not in data and "content" in data:
            data = {**data, "text": data["content"]}
        return data


class RedFlag(CamelModel):
    severity: RedFlagSeverity
    reason: str
    recommendation: str


class CandidateExercise(CamelModel):
    """One exercise as emitted by the collaborator. Untrusted until validated."""
    name: str = Field(min_length=1)
    sets: int = Field(gt=0)
    reps: str = Field(min_length=1)
    instructions: str = Field(min_length=1)
    safety_notes: str = ""
    # Filled from the resolved catalog entry once a protocol is accepted
    catalog_id: Optional[str] = None


_DURATION_DAYS_RE = re.compile(r"(\d+)\s*(day|days|d|week|weeks|wk|wks)?\b", re.IGNORECASE)


class RecoveryProtocol(CamelModel):
    """
    A structured exercise plan.

    Exercise count and disclaimer content are checked by ProtocolValidator,
    not here, so that they surface as explicit rejection reasons.
    """
    description: str
    exercises: List[CandidateExercise]
    duration_days: int = Field(gt=0)
    frequency: str
    disclaimer: str
    protocol_name: Optional[str] = None
    body_region: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_duration_text(cls, data: Any) -> Any:
        # The collaborator has historically emitted "duration": "14 days" / "2 weeks"
        if not isinstance(data, dict):
            return data
        if "durationDays" in data or "duration_days" in data or "duration" not in data:
            return data
        raw = data["duration"]
        days: Any = raw
        if isinstance(raw, str):
            m = _DURATION_DAYS_RE.search(raw)
            if m:
                days = int(m.group(1))
                unit = (m.group(2) or "").lower()
                if unit.startswith("w"):
                    days *= 7
        out = {k: v for k, v in data.items() if k != "duration"}
        out["durationDays"] = days
        return out


class QuickReplyEnvelope(CamelModel):
    """Conversational reply shape the collaborator is asked to use."""
    message: str = Field(min_length=1)
    quick_replies: List[str] = Field(default_factory=list)


class ModificationRecord(CamelModel):
    """Audit entry for a one-exercise swap inside an active protocol."""
    old_exercise: str
    new_exercise: str
    reason: str
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Requests / responses
# ---------------------------------------------------------------------------

class IntakeRequest(CamelModel):
    user_id: str
    conversation_history: List[ConversationMessage] = Field(default_factory=list)
    user_message: str = Field(min_length=1)
    equipment_preference: Optional[EquipmentPreference] = None


class IntakeResponse(CamelModel):
    """
    Outbound result contract.

    Exactly one of red_flags (escalation), ai_message (continue) or protocol
    (ready) is meaningfully populated. Moderate flags may accompany the
    other two as metadata.
    """
    has_red_flags: bool
    red_flags: Optional[List[RedFlag]] = None
    should_proceed: bool
    ai_message: Optional[str] = None
    quick_replies: Optional[List[str]] = None
    protocol: Optional[RecoveryProtocol] = None
    requires_paywall: bool = False
    state: str
    equipment_preference: EquipmentPreference


class SubstitutionRequest(CamelModel):
    user_id: str
    target_exercise: CandidateExercise
    issue: str = Field(min_length=1)
    current_exercises: List[CandidateExercise] = Field(default_factory=list)
    conversation_history: List[ConversationMessage] = Field(default_factory=list)
    equipment_preference: Optional[EquipmentPreference] = None


class SubstitutionResponse(CamelModel):
    message: str
    alternatives: List[CandidateExercise] = Field(default_factory=list)
    quick_replies: List[str] = Field(default_factory=list)
    issue_kind: str


class ApplySubstitutionRequest(CamelModel):
    user_id: str
    protocol: RecoveryProtocol
    target_exercise: str = Field(min_length=1)
    replacement: CandidateExercise
    reason: str = ""
    equipment_preference: Optional[EquipmentPreference] = None
    conversation_history: List[ConversationMessage] = Field(default_factory=list)


class ApplySubstitutionResponse(CamelModel):
    protocol: RecoveryProtocol
    modification: ModificationRecord


class CatalogEntryOut(CamelModel):
    id: str
    canonical_name: str
    body_region: str
    equipment_class: str


class CatalogResponse(CamelModel):
    version: str
    exercises: List[CatalogEntryOut]
