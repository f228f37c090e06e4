"""
Equipment preference inference.

Reads the user's own messages for an explicit statement about resistance
bands. The most recent explicit statement wins, so the preference only
changes when the user restates it. Callers that collect the answer as a
structured field should pass it explicitly instead of relying on this.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from services.recovery.schemas import ConversationMessage, EquipmentPreference

# Checked before BAND_PATTERNS: "I don't have bands" must not read as "have bands".
BODYWEIGHT_ONLY_PATTERNS = (
    r"\bbody\s?weight only\b",
    r"\bonly (?:my )?body\s?weight\b",
    r"\bjust (?:my )?body\s?weight\b",
    r"\bno (?:resistance |exercise |elastic )?bands?\b",
    r"\b(?:don'?t|do not|dont) (?:have|own) (?:any |a )?(?:resistance |exercise |elastic )?bands?\b",
)

# Checked after BAND_PATTERNS: "bands but no other equipment" means bands.
NO_EQUIPMENT_PATTERNS = (
    r"\bno (?:\w+ )?equipment\b",
    r"\bwithout (?:any )?equipment\b",
    r"\bnothing at home\b",
)

BAND_PATTERNS = (
    r"\b(?:i|we)(?:'ve| have)? (?:do )?(?:have|own|got) (?:a |an |some |two |few |a few |a set of |one )?(?:resistance |exercise |elastic |loop |mini )*bands?\b",
    r"\bi have (?:a |some )?(?:resistance|exercise|elastic|theraband|thera-band)",
    r"\b(?:yes|yeah|yep),? (?:i have )?(?:resistance |exercise )?bands?\b",
    r"\bbands? (?:are|is) fine\b",
    r"\bhave access to (?:a |some )?(?:resistance |exercise )?bands?\b",
)

_BODYWEIGHT_RE = re.compile("|".join(BODYWEIGHT_ONLY_PATTERNS))
_BANDS_RE = re.compile("|".join(BAND_PATTERNS))
_NO_EQUIPMENT_RE = re.compile("|".join(NO_EQUIPMENT_PATTERNS))


def classify_statement(text: str) -> EquipmentPreference:
    """Classify a single user message. UNKNOWN when it says nothing about equipment."""
    lower = (text or "").replace("’", "'").lower()
    if not lower:
        return EquipmentPreference.UNKNOWN
    if _BODYWEIGHT_RE.search(lower):
        return EquipmentPreference.BODYWEIGHT_ONLY
    if _BANDS_RE.search(lower):
        return EquipmentPreference.HAS_BANDS
    if _NO_EQUIPMENT_RE.search(lower):
        return EquipmentPreference.BODYWEIGHT_ONLY
    return EquipmentPreference.UNKNOWN


def infer_equipment_preference(
    history: Iterable[ConversationMessage],
    utterance: Optional[str] = None,
) -> EquipmentPreference:
    """Latest explicit user statement wins; assistant turns are ignored."""
    preference = EquipmentPreference.UNKNOWN
    texts = [m.text for m in history if m.role == "user"]
    if utterance:
        texts.append(utterance)
    for text in texts:
        stated = classify_statement(text)
        if stated != EquipmentPreference.UNKNOWN:
            preference = stated
    return preference


def resolve_equipment_preference(
    explicit: Optional[EquipmentPreference],
    history: Iterable[ConversationMessage],
    utterance: Optional[str] = None,
) -> EquipmentPreference:
    """An explicit, structured preference always beats inference from free text."""
    if explicit is not None and explicit != EquipmentPreference.UNKNOWN:
        return explicit
    return infer_equipment_preference(history, utterance)
