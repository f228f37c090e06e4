"""
Recovery Intake Package

Conversational gate that turns a free-text pain description into a safety
escalation, a clarifying question, or a validated exercise protocol drawn
from the approved catalog.

Modules:
- catalog: approved exercise list, loading and lookup
- red_flags: safety screening of conversation text
- equipment: equipment preference inference
- extractor: conversation vs. structured protocol classification
- validator: catalog/equipment contract for candidate protocols
- orchestrator: one intake turn end to end
- substitution: same-region exercise swaps

Usage:
    from services.recovery import RecoveryIntakeOrchestrator, get_catalog
    from services.recovery.red_flags import detector
"""

from .catalog import (
    CatalogExercise,
    EquipmentClass,
    ExerciseCatalog,
    get_catalog,
    load_catalog,
)
from .equipment import infer_equipment_preference, resolve_equipment_preference
from .errors import (
    CatalogError,
    ProtocolValidationFailed,
    RecoveryError,
    SubstitutionRejected,
    UnknownExerciseError,
    UpstreamFailure,
)
from .extractor import ConversationalReply, StructuredCandidate, extract
from .llm import GenerationError, TextGenerator, get_text_generator
from .orchestrator import (
    Continue,
    Escalation,
    IntakeState,
    ProtocolReady,
    RecoveryIntakeOrchestrator,
    to_response,
)
from .red_flags import RedFlagDetector, detect_red_flags, detector
from .substitution import IssueKind, SubstitutionAssistant, apply_substitution, classify_issue
from .validator import ProtocolValidator, ValidationOutcome

__all__ = [
    # Catalog
    "CatalogExercise",
    "EquipmentClass",
    "ExerciseCatalog",
    "get_catalog",
    "load_catalog",
    # Safety
    "RedFlagDetector",
    "detect_red_flags",
    "detector",
    # Equipment
    "infer_equipment_preference",
    "resolve_equipment_preference",
    # Extraction / validation
    "ConversationalReply",
    "StructuredCandidate",
    "extract",
    "ProtocolValidator",
    "ValidationOutcome",
    # Orchestration
    "RecoveryIntakeOrchestrator",
    "IntakeState",
    "Escalation",
    "Continue",
    "ProtocolReady",
    "to_response",
    # Substitution
    "IssueKind",
    "SubstitutionAssistant",
    "apply_substitution",
    "classify_issue",
    # Collaborator
    "TextGenerator",
    "GenerationError",
    "get_text_generator",
    # Errors
    "RecoveryError",
    "CatalogError",
    "UpstreamFailure",
    "ProtocolValidationFailed",
    "UnknownExerciseError",
    "SubstitutionRejected",
]
