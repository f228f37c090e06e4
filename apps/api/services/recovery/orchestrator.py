"""
Recovery Intake Orchestrator

Runs one turn of the intake conversation and returns exactly one outcome:

    Escalation     - a high-severity red flag; the collaborator is never called
    Continue       - the collaborator asked or answered something; keep talking
    ProtocolReady  - a candidate protocol passed validation; gate before showing

A candidate that fails validation is never returned. The turn raises
ProtocolValidationFailed instead (fail closed).

State flow:
    GATHERING -> ESCALATED
              -> PROTOCOL_PENDING -> PROTOCOL_ACCEPTED | VALIDATION_FAILED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Union

from services.recovery.catalog import ExerciseCatalog
from services.recovery.equipment import resolve_equipment_preference
from services.recovery.errors import ProtocolValidationFailed, UpstreamFailure
from services.recovery.extractor import ConversationalReply, extract
from services.recovery.llm import GenerationError, TextGenerator
from services.recovery.prompts import build_intake_instructions
from services.recovery.red_flags import RedFlagDetector, conversation_text
from services.recovery.red_flags import detector as default_detector
from services.recovery.schemas import (
    ConversationMessage,
    EquipmentPreference,
    IntakeResponse,
    RecoveryProtocol,
    RedFlag,
    RedFlagSeverity,
)
from services.recovery.validator import ProtocolValidator

logger = logging.getLogger(__name__)


class IntakeState(str, Enum):
    GATHERING = "gathering"
    ESCALATED = "escalated"
    PROTOCOL_PENDING = "protocol_pending"
    PROTOCOL_ACCEPTED = "protocol_accepted"
    VALIDATION_FAILED = "validation_failed"


@dataclass(frozen=True)
class Escalation:
    red_flags: List[RedFlag]
    equipment_preference: EquipmentPreference
    state: IntakeState = IntakeState.ESCALATED


@dataclass(frozen=True)
class Continue:
    message: str
    equipment_preference: EquipmentPreference
    quick_replies: List[str] = field(default_factory=list)
    # Moderate flags ride along as metadata
    red_flags: List[RedFlag] = field(default_factory=list)
    state: IntakeState = IntakeState.GATHERING


@dataclass(frozen=True)
class ProtocolReady:
    protocol: RecoveryProtocol
    equipment_preference: EquipmentPreference
    requires_gate: bool = True
    red_flags: List[RedFlag] = field(default_factory=list)
    state: IntakeState = IntakeState.PROTOCOL_ACCEPTED


OrchestratorResult = Union[Escalation, Continue, ProtocolReady]


class RecoveryIntakeOrchestrator:
    """One instance per request; holds no per-conversation state."""

    def __init__(
        self,
        generator: TextGenerator,
        catalog: ExerciseCatalog,
        detector: Optional[RedFlagDetector] = None,
        validator: Optional[ProtocolValidator] = None,
    ):
        self.generator = generator
        self.catalog = catalog
        self.detector = detector or default_detector
        self.validator = validator or ProtocolValidator(catalog)

    async def handle_turn(
        self,
        history: Sequence[ConversationMessage],
        utterance: str,
        equipment_preference: Optional[EquipmentPreference] = None,
    ) -> OrchestratorResult:
        history = list(history)
        preference = resolve_equipment_preference(equipment_preference, history, utterance)

        rule = self.detector.matched_rule(conversation_text(history, utterance))
        flags = [rule.to_flag()] if rule else []

        if rule and rule.severity == RedFlagSeverity.HIGH:
            # Conversation text is not logged
            logger.info(
                "Recovery intake escalated",
                extra={"extra_fields": {"rule": rule.name, "turns": len(history) + 1}},
            )
            return Escalation(red_flags=flags, equipment_preference=preference)

        instructions = build_intake_instructions(
            self.catalog.eligible(preference), preference, self.catalog.version
        )
        raw = await self._generate(instructions, history, utterance)

        extraction = extract(raw)
        if isinstance(extraction, ConversationalReply):
            return Continue(
                message=extraction.text,
                quick_replies=list(extraction.quick_replies),
                red_flags=flags,
                equipment_preference=preference,
            )

        # IntakeState.PROTOCOL_PENDING
        candidate = extraction.protocol
        outcome = self.validator.validate(candidate, preference)
        if not outcome.accepted:
            logger.warning(
                "Candidate protocol rejected",
                extra={"extra_fields": {
                    "state": IntakeState.VALIDATION_FAILED.value,
                    "reasons": outcome.reasons,
                    "equipment_preference": preference.value,
                    "catalog_version": self.catalog.version,
                }},
            )
            raise ProtocolValidationFailed(outcome.reasons)

        annotated = candidate.model_copy(
            update={
                "exercises": [
                    ex.model_copy(update={"catalog_id": entry.id})
                    for ex, entry in zip(candidate.exercises, outcome.resolved)
                ]
            }
        )
        logger.info(
            "Recovery protocol accepted",
            extra={"extra_fields": {
                "exercise_count": len(annotated.exercises),
                "equipment_preference": preference.value,
                "catalog_version": self.catalog.version,
            }},
        )
        return ProtocolReady(protocol=annotated, red_flags=flags, equipment_preference=preference)

    async def _generate(self, instructions: str, history: List[ConversationMessage], utterance: str) -> str:
        try:
            raw = await self.generator.generate(instructions, history, utterance)
        except GenerationError as e:
            logger.error(f"Recovery collaborator failed: {e}")
            raise UpstreamFailure(str(e), cause=e) from e
        if not raw or not raw.strip():
            logger.error("Recovery collaborator returned empty output")
            raise UpstreamFailure("Collaborator returned empty output")
        return raw


def to_response(result: OrchestratorResult) -> IntakeResponse:
    """Map an orchestrator outcome onto the wire contract."""
    if isinstance(result, Escalation):
        return IntakeResponse(
            has_red_flags=True,
            red_flags=result.red_flags,
            should_proceed=False,
            state=result.state.value,
            equipment_preference=result.equipment_preference,
        )

    flags = result.red_flags or None
    if isinstance(result, Continue):
        return IntakeResponse(
            has_red_flags=bool(flags),
            red_flags=flags,
            should_proceed=True,
            ai_message=result.message,
            quick_replies=result.quick_replies or None,
            state=result.state.value,
            equipment_preference=result.equipment_preference,
        )

    return IntakeResponse(
        has_red_flags=bool(flags),
        red_flags=flags,
        should_proceed=True,
        protocol=result.protocol,
        requires_paywall=result.requires_gate,
        state=result.state.value,
        equipment_preference=result.equipment_preference,
    )
