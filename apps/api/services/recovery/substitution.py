"""
Substitution Assistant

Suggests replacements for one exercise in an active protocol and applies
a chosen swap.

The candidate pool is a mechanical filter, not a request to the
collaborator: eligible catalog subset, same body region as the target,
minus the target itself and anything already in the protocol. The
collaborator only picks and describes from that pool, and every name it
returns is checked against the pool again.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from services.recovery.catalog import CatalogExercise, EquipmentClass, ExerciseCatalog, normalize_name
from services.recovery.errors import SubstitutionRejected, UnknownExerciseError, UpstreamFailure
from services.recovery.extractor import parse_json_object
from services.recovery.llm import GenerationError, TextGenerator
from services.recovery.prompts import build_substitution_instructions
from services.recovery.schemas import (
    CandidateExercise,
    ConversationMessage,
    EquipmentPreference,
    ModificationRecord,
    RecoveryProtocol,
)

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3


class IssueKind(str, Enum):
    PAIN = "pain"
    TOO_EASY = "too_easy"
    TOO_HARD = "too_hard"
    GENERAL = "general"


# Checked in order; pain first so "too hard, it hurts" is treated as pain.
ISSUE_PATTERNS: Tuple[Tuple[IssueKind, str], ...] = (
    (IssueKind.PAIN, r"\bhurts?\b|\bpain(?:ful)?\b|\bsore\b|\baches?\b|\bdiscomfort\b|\buncomfortable\b|\btwinge\b"),
    (IssueKind.TOO_HARD, r"too (?:hard|difficult|much)|\bdifficult\b|can'?t (?:do|finish|complete)|struggl|\beasier\b"),
    (IssueKind.TOO_EASY, r"too easy|not (?:challenging|hard) enough|\bharder\b|more (?:challenging|challenge)|\bboring\b"),
)

ISSUE_GUIDANCE: Dict[IssueKind, str] = {
    IssueKind.PAIN: (
        "The exercise causes pain. Prefer gentler options with a smaller range of motion, "
        "and remind the user to stop if pain increases."
    ),
    IssueKind.TOO_EASY: "The exercise feels too easy. Prefer options that are a small step more challenging.",
    IssueKind.TOO_HARD: "The exercise feels too difficult. Prefer simpler, lower-effort options.",
    IssueKind.GENERAL: "The user wants a different option. Prefer exercises with a similar purpose.",
}

DEFAULT_QUICK_REPLIES: Dict[IssueKind, List[str]] = {
    IssueKind.PAIN: ["Show me another option", "It still hurts", "Keep my current plan"],
    IssueKind.TOO_EASY: ["Something harder", "This looks good", "Keep my current plan"],
    IssueKind.TOO_HARD: ["Something easier", "This looks good", "Keep my current plan"],
    IssueKind.GENERAL: ["Show me another option", "This looks good", "Keep my current plan"],
}

_ISSUE_RES = tuple((kind, re.compile(pattern)) for kind, pattern in ISSUE_PATTERNS)


def classify_issue(issue: str) -> IssueKind:
    lower = (issue or "").replace("’", "'").lower()
    for kind, pattern in _ISSUE_RES:
        if pattern.search(lower):
            return kind
    return IssueKind.GENERAL


@dataclass(frozen=True)
class SubstitutionSuggestion:
    message: str
    issue_kind: IssueKind
    alternatives: List[CandidateExercise] = field(default_factory=list)
    quick_replies: List[str] = field(default_factory=list)


def candidate_pool(
    catalog_subset: Iterable[CatalogExercise],
    target: CatalogExercise,
    active_names: Iterable[str] = (),
) -> List[CatalogExercise]:
    """Same region as the target, excluding the target and the active protocol."""
    excluded = {normalize_name(n) for n in active_names}
    excluded.add(target.key)
    return [
        ex for ex in catalog_subset
        if ex.body_region == target.body_region and ex.key not in excluded
    ]


class SubstitutionAssistant:
    def __init__(self, generator: TextGenerator, catalog: ExerciseCatalog):
        self.generator = generator
        self.catalog = catalog

    async def substitute(
        self,
        catalog_subset: Sequence[CatalogExercise],
        issue: str,
        target_exercise: Union[CandidateExercise, str],
        active_names: Iterable[str] = (),
        history: Sequence[ConversationMessage] = (),
    ) -> SubstitutionSuggestion:
        target_name = target_exercise if isinstance(target_exercise, str) else target_exercise.name
        target = self.catalog.resolve(target_name)
        if target is None:
            raise UnknownExerciseError(target_name)

        kind = classify_issue(issue)
        pool = candidate_pool(catalog_subset, target, active_names)

        if not pool:
            logger.info(
                "No substitution candidates",
                extra={"extra_fields": {"target": target.canonical_name, "body_region": target.body_region}},
            )
            return SubstitutionSuggestion(
                message=(
                    f"There isn't another {target.body_region} exercise in the catalog that fits your plan "
                    f"right now. You can keep {target.canonical_name} with fewer reps or a smaller range of "
                    f"motion, and check with a healthcare provider if it keeps bothering you."
                ),
                issue_kind=kind,
                quick_replies=["Keep my current plan", "Modify another"],
            )

        instructions = build_substitution_instructions(
            target.canonical_name, target.body_region, ISSUE_GUIDANCE[kind], pool, MAX_ALTERNATIVES
        )
        utterance = f'Issue with "{target.canonical_name}": {issue}'
        try:
            raw = await self.generator.generate(instructions, list(history), utterance)
        except GenerationError as e:
            logger.error(f"Substitution collaborator failed: {e}")
            raise UpstreamFailure(str(e), cause=e) from e
        if not raw or not raw.strip():
            raise UpstreamFailure("Collaborator returned empty output")

        return self._parse_suggestion(raw, pool, kind)

    def _parse_suggestion(self, raw: str, pool: List[CatalogExercise], kind: IssueKind) -> SubstitutionSuggestion:
        parsed = parse_json_object(raw)
        if parsed is None:
            return SubstitutionSuggestion(
                message=raw.strip(), issue_kind=kind, quick_replies=list(DEFAULT_QUICK_REPLIES[kind])
            )

        by_key = {ex.key: ex for ex in pool}
        alternatives: List[CandidateExercise] = []
        seen = set()
        dropped = 0
        raw_alternatives = parsed.get("alternatives")
        for item in raw_alternatives if isinstance(raw_alternatives, list) else []:
            try:
                alt = CandidateExercise.model_validate(item)
            except ValidationError:
                dropped += 1
                continue
            entry = by_key.get(normalize_name(alt.name))
            if entry is None or entry.key in seen:
                dropped += 1
                continue
            seen.add(entry.key)
            alternatives.append(alt.model_copy(update={"catalog_id": entry.id}))
            if len(alternatives) == MAX_ALTERNATIVES:
                break

        if dropped:
            logger.info(
                "Dropped substitution alternatives outside the candidate pool",
                extra={"extra_fields": {"dropped": dropped, "kept": len(alternatives)}},
            )

        message = parsed.get("message")
        if not isinstance(message, str) or not message.strip():
            message = (
                "Here are some alternative exercises that might work better for you:"
                if alternatives else "I couldn't find a suitable alternative for that exercise."
            )

        replies = parsed.get("quickReplies")
        if isinstance(replies, list) and all(isinstance(r, str) for r in replies) and replies:
            quick_replies = [r.strip() for r in replies if r.strip()]
        else:
            quick_replies = list(DEFAULT_QUICK_REPLIES[kind])

        return SubstitutionSuggestion(
            message=message.strip(), issue_kind=kind, alternatives=alternatives, quick_replies=quick_replies
        )


def apply_substitution(
    protocol: RecoveryProtocol,
    target_name: str,
    replacement: CandidateExercise,
    reason: str,
    catalog: ExerciseCatalog,
    equipment_pref: EquipmentPreference,
) -> Tuple[RecoveryProtocol, ModificationRecord]:
    """
    Swap exactly one exercise, preserving order and every other field.

    Raises UnknownExerciseError when either name is not in the catalog and
    SubstitutionRejected when the swap leaves the body region, breaks the
    equipment preference or duplicates an exercise already in the plan.
    """
    target_key = normalize_name(target_name)
    index: Optional[int] = next(
        (i for i, ex in enumerate(protocol.exercises) if normalize_name(ex.name) == target_key), None
    )
    if index is None:
        raise SubstitutionRejected([f"Exercise is not in the active protocol: {target_name}"])

    target = catalog.resolve(target_name)
    if target is None:
        raise UnknownExerciseError(target_name)
    entry = catalog.resolve(replacement.name)
    if entry is None:
        raise UnknownExerciseError(replacement.name)

    reasons: List[str] = []
    if entry.key == target.key:
        reasons.append("Replacement is the same exercise as the target")
    if entry.body_region != target.body_region:
        reasons.append(
            f"Replacement targets {entry.body_region}, but {target.canonical_name} targets {target.body_region}"
        )
    if equipment_pref == EquipmentPreference.BODYWEIGHT_ONLY and entry.equipment_class == EquipmentClass.BAND:
        reasons.append(f"Replacement requires a resistance band but user is bodyweight only: {replacement.name}")
    if any(
        i != index and normalize_name(ex.name) == entry.key for i, ex in enumerate(protocol.exercises)
    ):
        reasons.append(f"Replacement is already in the protocol: {replacement.name}")
    if reasons:
        raise SubstitutionRejected(reasons)

    old = protocol.exercises[index]
    exercises = list(protocol.exercises)
    exercises[index] = replacement.model_copy(update={"catalog_id": entry.id})
    updated = protocol.model_copy(update={"exercises": exercises})

    record = ModificationRecord(
        old_exercise=old.name,
        new_exercise=replacement.name,
        reason=reason.strip() if reason and reason.strip() else f"User reported an issue with {old.name}",
    )
    logger.info(
        "Exercise substituted",
        extra={"extra_fields": {"old": old.name, "new": replacement.name, "body_region": target.body_region}},
    )
    return updated, record
