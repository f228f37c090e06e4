"""
Protocol Validator

Enforces the contract between the untrusted collaborator and the catalog.
Every rule runs and every violation is reported; nothing is repaired.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from services.recovery.catalog import CatalogExercise, EquipmentClass, ExerciseCatalog
from services.recovery.schemas import EquipmentPreference, RecoveryProtocol

MIN_EXERCISES = 4
MAX_EXERCISES = 6


@dataclass(frozen=True)
class ValidationOutcome:
    accepted: bool
    reasons: List[str] = field(default_factory=list)
    # Resolved catalog entries, parallel to the candidate's exercises (None where unmatched)
    resolved: List[Optional[CatalogExercise]] = field(default_factory=list)


class ProtocolValidator:
    def __init__(self, catalog: ExerciseCatalog):
        self.catalog = catalog

    def validate(self, candidate: RecoveryProtocol, equipment_pref: EquipmentPreference) -> ValidationOutcome:
        reasons: List[str] = []

        count = len(candidate.exercises)
        if count < MIN_EXERCISES or count > MAX_EXERCISES:
            reasons.append(
                f"Protocol has {count} exercises; expected between {MIN_EXERCISES} and {MAX_EXERCISES}"
            )

        resolved: List[Optional[CatalogExercise]] = []
        for exercise in candidate.exercises:
            entry = self.catalog.resolve(exercise.name)
            resolved.append(entry)
            if entry is None:
                reasons.append(f"Exercise not in catalog: {exercise.name}")

        if equipment_pref == EquipmentPreference.BODYWEIGHT_ONLY:
            for exercise, entry in zip(candidate.exercises, resolved):
                if entry is not None and entry.equipment_class == EquipmentClass.BAND:
                    reasons.append(f"Exercise requires a resistance band but user is bodyweight only: {exercise.name}")

        if not (candidate.disclaimer or "").strip():
            reasons.append("Protocol disclaimer is empty")

        return ValidationOutcome(accepted=not reasons, reasons=reasons, resolved=resolved)
